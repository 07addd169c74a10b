# accounting/services/period_lifecycle.py

"""
PERIOD LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for fiscal years and monthly periods.

DESIGN PRINCIPLES:
- No database writes
- No side effects
- Single source of truth

    OPEN     --close-->   CLOSED
    CLOSED   --reopen-->  REOPENED   (reason required)
    REOPENED --reclose--> CLOSED
"""

from __future__ import annotations

from accounting.models.period import PeriodBase
from accounting.services.exceptions import RejectionCode, StructuralError, TransitionError

# ============================================================
# ACTIONS
# ============================================================

CLOSE = "close"
REOPEN = "reopen"
RECLOSE = "reclose"

# ============================================================
# STATE DEFINITIONS
# ============================================================

ALLOWED_TRANSITIONS = {
    PeriodBase.OPEN: {CLOSE: PeriodBase.CLOSED},
    PeriodBase.CLOSED: {REOPEN: PeriodBase.REOPENED},
    PeriodBase.REOPENED: {RECLOSE: PeriodBase.CLOSED},
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_state: str, action: str) -> bool:
    return action in ALLOWED_TRANSITIONS.get(from_state, {})


def target_state(*, from_state: str, action: str) -> str:
    return ALLOWED_TRANSITIONS[from_state][action]


def close_action_for(period: PeriodBase) -> str:
    """close_period on a REOPENED period is a reclose."""
    return RECLOSE if period.state == PeriodBase.REOPENED else CLOSE


def validate_transition(*, period: PeriodBase, action: str, reason: str | None = None) -> str:
    """Return the target state, or raise TransitionError / StructuralError."""
    if action == REOPEN and not (reason or "").strip():
        raise StructuralError(
            f"Reopening {period.name} requires a reason",
            code=RejectionCode.MISSING_REASON,
            period_id=period.pk,
        )

    if not can_transition(from_state=period.state, action=action):
        code = RejectionCode.NOT_REOPENED if action == RECLOSE else RejectionCode.ILLEGAL_TRANSITION
        raise TransitionError(
            f"{period.name} cannot {action} from state {period.state}",
            code=code,
            period_id=period.pk,
            state=period.state,
            action=action,
        )

    return target_state(from_state=period.state, action=action)

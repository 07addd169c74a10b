# accounting/services/chart_service.py

"""
CHART OF ACCOUNTS SERVICE

Account administration and account resolution.

RULES:
- Codes are unique across the chart
- A child account has the same type as its parent
- An account that already carries postings cannot become a parent
- Accounts with postings or children are never deleted (deactivate instead)
- Resolution hard-fails on missing setup (never posts to a guessed account)
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from accounting.models.account import Account
from accounting.models.adjustment import DepreciationSchedule
from accounting.models.journal_line import JournalEntryLine
from accounting.services.exceptions import (
    AccountResolutionError,
    ChartOfAccountsError,
    NotFoundError,
    RejectionCode,
)

logger = logging.getLogger(__name__)


def _has_postings(account: Account) -> bool:
    return JournalEntryLine.objects.filter(account=account).exists()


def get_account(account_id: int) -> Account:
    try:
        return Account.objects.get(pk=account_id)
    except Account.DoesNotExist as exc:
        raise NotFoundError(f"Account id={account_id} not found", account_id=account_id) from exc


def get_account_by_code(code: str, *, active_only: bool = True) -> Account:
    code = (code or "").strip()
    if not code:
        raise AccountResolutionError("Account code is required")

    qs = Account.objects.filter(code=code)
    if active_only:
        qs = qs.filter(is_active=True)

    account = qs.first()
    if account is None:
        raise AccountResolutionError(
            f"Account with code={code} not found", account_code=code
        )
    return account


def resolve_period_result_account() -> Account:
    """
    Equity account receiving the net result of a closed fiscal year.

    Resolution order:
    1. settings.ACCOUNTING_PERIOD_RESULT_ACCOUNT_CODE (when set)
    2. first active leaf EQUITY account named like "result" / "retained"
    """
    code = (getattr(settings, "ACCOUNTING_PERIOD_RESULT_ACCOUNT_CODE", "") or "").strip()
    if code:
        account = get_account_by_code(code)
        if account.account_type != Account.EQUITY or account.is_parent:
            raise AccountResolutionError(
                f"Period result account {code} must be an active leaf EQUITY account",
                account_code=code,
            )
        return account

    candidates = Account.objects.filter(
        account_type=Account.EQUITY,
        is_active=True,
        is_parent=False,
    ).order_by("code")

    for keyword in ("result", "retained"):
        account = candidates.filter(name__icontains=keyword).first()
        if account is not None:
            return account

    raise AccountResolutionError(
        "No EQUITY account found to receive the period result. "
        "Create one (e.g. 'Period Result') or set ACCOUNTING_PERIOD_RESULT_ACCOUNT_CODE."
    )


@transaction.atomic
def create_account(
    *,
    code: str,
    name: str,
    account_type: str,
    parent: Account | None = None,
    nature: str = "",
    is_parent: bool = False,
    description: str = "",
) -> Account:
    code = (code or "").strip()
    if Account.objects.filter(code=code).exists():
        raise ChartOfAccountsError(
            f"Account code {code} already exists",
            code=RejectionCode.DUPLICATE_ACCOUNT_CODE,
            account_code=code,
        )

    if parent is not None:
        parent = Account.objects.select_for_update().get(pk=parent.pk)

        if parent.account_type != account_type:
            raise ChartOfAccountsError(
                f"Child account {code} must have the same type as parent {parent.code} "
                f"({parent.account_type})",
                code=RejectionCode.PARENT_TYPE_MISMATCH,
                account_code=code,
                parent_code=parent.code,
            )

        if not parent.is_parent:
            if _has_postings(parent):
                raise ChartOfAccountsError(
                    f"Account {parent.code} already has postings and cannot become a parent",
                    code=RejectionCode.ACCOUNT_HAS_POSTINGS,
                    account_code=parent.code,
                )
            parent.is_parent = True
            parent.save(update_fields=["is_parent", "updated_at"])

    try:
        with transaction.atomic():
            account = Account.objects.create(
                code=code,
                name=name,
                account_type=account_type,
                nature=nature or "",
                parent=parent,
                is_parent=is_parent,
                description=description or "",
            )
    except IntegrityError as exc:
        duplicate = Account.objects.filter(code=code).exists()
        raise ChartOfAccountsError(
            f"Failed to create account {code}: {exc}",
            code=RejectionCode.DUPLICATE_ACCOUNT_CODE if duplicate else RejectionCode.INVALID_ACCOUNT,
            account_code=code,
        ) from exc
    except ValidationError as exc:
        raise ChartOfAccountsError(
            f"Invalid account {code}: {exc}",
            code=RejectionCode.INVALID_ACCOUNT,
            account_code=code,
        ) from exc

    logger.info(
        "Account created",
        extra={"account_code": account.code, "account_type": account.account_type},
    )
    return account


@transaction.atomic
def update_account(
    account: Account,
    *,
    name: str | None = None,
    description: str | None = None,
    nature: str | None = None,
    parent: Account | None = None,
) -> Account:
    """
    Rename / re-describe / re-parent an account.

    Moving an account under a new parent follows the same rules as creation:
    same type, and the new parent must not carry postings of its own.
    """
    account = Account.objects.select_for_update().get(pk=account.pk)

    if name is not None:
        account.name = name
    if description is not None:
        account.description = description
    if nature is not None:
        account.nature = nature

    if parent is not None and parent.pk != account.parent_id:
        if parent.account_type != account.account_type:
            raise ChartOfAccountsError(
                f"Account {account.code} cannot move under {parent.code}: type mismatch",
                code=RejectionCode.PARENT_TYPE_MISMATCH,
                account_code=account.code,
                parent_code=parent.code,
            )
        if not parent.is_parent and _has_postings(parent):
            raise ChartOfAccountsError(
                f"Account {parent.code} already has postings and cannot become a parent",
                code=RejectionCode.ACCOUNT_HAS_POSTINGS,
                account_code=parent.code,
            )

        account.parent = parent
        try:
            account.full_clean()
        except ValidationError as exc:
            raise ChartOfAccountsError(
                f"Account {account.code} cannot move under {parent.code}: {exc}",
                code=RejectionCode.ACCOUNT_CYCLE,
                account_code=account.code,
                parent_code=parent.code,
            ) from exc

        if not parent.is_parent:
            parent.is_parent = True
            parent.save(update_fields=["is_parent", "updated_at"])

    account.save()
    return account


def set_account_active(account: Account, *, is_active: bool) -> Account:
    account.is_active = is_active
    account.save(update_fields=["is_active", "updated_at"])
    logger.info(
        "Account activation changed",
        extra={"account_code": account.code, "is_active": is_active},
    )
    return account


def deactivate_account(account: Account) -> Account:
    return set_account_active(account, is_active=False)


@transaction.atomic
def delete_account(account: Account) -> None:
    if account.children.exists():
        raise ChartOfAccountsError(
            f"Account {account.code} has child accounts and cannot be deleted",
            code=RejectionCode.ACCOUNT_HAS_CHILDREN,
            account_code=account.code,
        )
    if _has_postings(account):
        raise ChartOfAccountsError(
            f"Account {account.code} has postings and cannot be deleted; deactivate it instead",
            code=RejectionCode.ACCOUNT_HAS_POSTINGS,
            account_code=account.code,
        )
    if (
        account.debit_adjustment_templates.exists()
        or account.credit_adjustment_templates.exists()
        or DepreciationSchedule.objects.filter(asset_account=account).exists()
    ):
        raise ChartOfAccountsError(
            f"Account {account.code} is used by adjustment templates or a depreciation schedule",
            code=RejectionCode.ACCOUNT_IN_USE,
            account_code=account.code,
        )

    parent_id = account.parent_id
    account.delete()

    # A parent left without children becomes a postable leaf again.
    if parent_id is not None and not Account.objects.filter(parent_id=parent_id).exists():
        Account.objects.filter(pk=parent_id).update(is_parent=False)

"""
PATH: manage.py

Management entrypoint for the ledger project (tests, shell, migrate).

Settings selection:
- DJANGO_SETTINGS_MODULE wins when it names a concrete module.
- Otherwise LEDGER_ENV picks one of ledger.settings.{dev,prod} (default: dev).
- The bare package "ledger.settings" loads nothing, so it is treated as unset.
"""

from __future__ import annotations

import os
import sys

SETTINGS_PACKAGE = "ledger.settings"
KNOWN_ENVIRONMENTS = ("dev", "prod")


def _resolve_settings_module() -> str:
    current = (os.environ.get("DJANGO_SETTINGS_MODULE") or "").strip()
    if current and current != SETTINGS_PACKAGE:
        return current

    ledger_env = (os.environ.get("LEDGER_ENV") or "dev").strip().lower()
    if ledger_env not in KNOWN_ENVIRONMENTS:
        sys.exit(f"LEDGER_ENV must be one of {', '.join(KNOWN_ENVIRONMENTS)}; got {ledger_env!r}")
    return f"{SETTINGS_PACKAGE}.{ledger_env}"


def main() -> None:
    os.environ["DJANGO_SETTINGS_MODULE"] = _resolve_settings_module()

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Django is not importable; install the project (pip install -e .) "
            "inside the active virtual environment."
        ) from exc

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()

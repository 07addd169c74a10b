# ledger/settings/__init__.py
"""
PATH: ledger/settings/__init__.py

Settings package entrypoint.

We intentionally do NOT import dev/prod here to avoid accidental environment coupling.
Use DJANGO_SETTINGS_MODULE to select:
- ledger.settings.dev   (local development + test runs)
- ledger.settings.prod  (production, PostgreSQL only)
"""

# accounting/apps.py

"""
ACCOUNTING APP CONFIG

Double-entry bookkeeping core:
- Chart of accounts (hierarchical)
- Journal entries + lines (pending -> approved | voided)
- Fiscal years + monthly periods (open -> closed -> reopened -> closed)
- Closing / opening protocol
"""

from django.apps import AppConfig


class AccountingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounting"
    verbose_name = "Accounting"

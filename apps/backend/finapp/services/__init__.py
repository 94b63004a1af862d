"""
Services package

Business logic classes used by the API routers and the job CLI.
"""

from .transaction_service import TransactionBalanceService
from .fixed_account_service import FixedAccountService
from .fixed_account_jobs import FixedAccountJobService

__all__ = [
    "TransactionBalanceService",
    "FixedAccountService",
    "FixedAccountJobService",
]

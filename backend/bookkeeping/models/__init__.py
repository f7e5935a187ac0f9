from bookkeeping.models.gl import (
    Account,
    AccountBalance,
    AccountCategory,
    AccountType,
    EntryStatus,
    JournalEntry,
    JournalEntryLine,
    NormalBalance,
)
from bookkeeping.models.org import Organization

__all__ = [
    # Tenancy
    "Organization",
    # Chart of accounts
    "AccountType",
    "AccountCategory",
    "Account",
    "AccountBalance",
    "NormalBalance",
    # Journal
    "JournalEntry",
    "JournalEntryLine",
    "EntryStatus",
]

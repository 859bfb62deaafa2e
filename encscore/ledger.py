"""
Account Ledger.

One AccountRecord per account that ever submitted. The record is created by
the first successful submission and replaced wholesale by every later one.
Absence of a record is the NoRecord state.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .ciphertext import CiphertextRef
from .errors import NoRecord


@dataclass(frozen=True)
class AccountRecord:
    """
    Encrypted per-account state.

    has_submitted is the only plaintext field; it is an existence flag.
    """
    last_score: CiphertextRef
    current_score: CiphertextRef
    qualification: CiphertextRef
    has_submitted: bool = True

    def references(self) -> Tuple[CiphertextRef, ...]:
        return (self.last_score, self.current_score, self.qualification)


class AccountLedger:
    """Thread-safe map of account address -> AccountRecord."""

    def __init__(self):
        self._records: Dict[str, AccountRecord] = {}
        self._lock = threading.RLock()

    def has_record(self, account: str) -> bool:
        with self._lock:
            return account.lower() in self._records

    def get(self, account: str) -> Optional[AccountRecord]:
        with self._lock:
            return self._records.get(account.lower())

    def require(self, account: str) -> AccountRecord:
        """
        Get the record or fail.

        Raises:
            NoRecord: the account never submitted
        """
        record = self.get(account)
        if record is None:
            raise NoRecord("account has not submitted credit data", account=account.lower())
        return record

    def write(self, account: str, record: AccountRecord) -> None:
        """Replace the account's record. Never merges."""
        with self._lock:
            self._records[account.lower()] = record

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

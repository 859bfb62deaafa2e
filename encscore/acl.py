"""
Permission Manager.

Maintains the relation (ciphertext, principal) -> allowed. The only
mutation is insert: a grant is never revoked, so a ciphertext's grant set
never shrinks. A fresh value needs a fresh CiphertextRef with its own grants.

Grants made inside a transaction() block are staged and become visible to
other threads only when the block completes; if the block raises they are
discarded together with the rest of the transaction.
"""

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, FrozenSet, List, Set, Tuple

from .ciphertext import as_ref
from .errors import MalformedReference

logger = logging.getLogger(__name__)


class PermissionManager:
    """Append-only decryption permission relation."""

    def __init__(self):
        self._grants: Dict[str, Set[str]] = defaultdict(set)
        self._lock = threading.RLock()
        self._local = threading.local()

    def _pending(self) -> List[List[Tuple[str, str]]]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = []
            self._local.stack = stack
        return stack

    def grant(self, ref, principal: str) -> None:
        """
        Allow `principal` to request decryption of `ref`.

        Idempotent. Fails only on a malformed reference or principal.
        """
        handle = as_ref(ref).handle
        if not isinstance(principal, str) or not principal:
            raise MalformedReference("principal must be a non-empty address", handle=handle)
        principal = principal.lower()

        stack = self._pending()
        if stack:
            stack[-1].append((handle, principal))
            return

        with self._lock:
            self._grants[handle].add(principal)
        logger.debug("granted %s on %s", principal, handle)

    def is_granted(self, ref, principal: str) -> bool:
        """Pure query used by the decryption relay."""
        try:
            handle = as_ref(ref).handle
        except MalformedReference:
            return False
        principal = principal.lower()

        for staged in self._pending():
            if (handle, principal) in staged:
                return True

        with self._lock:
            return principal in self._grants.get(handle, ())

    def principals(self, ref) -> FrozenSet[str]:
        """Committed principals allowed on `ref`."""
        handle = as_ref(ref).handle
        with self._lock:
            return frozenset(self._grants.get(handle, ()))

    def grant_count(self) -> int:
        with self._lock:
            return sum(len(p) for p in self._grants.values())

    @contextmanager
    def transaction(self):
        """
        Stage grants until the block completes.

        Nested blocks fold into their parent on success.
        """
        stack = self._pending()
        stack.append([])
        try:
            yield
        except BaseException:
            discarded = stack.pop()
            if discarded:
                logger.debug("discarded %d staged grants", len(discarded))
            raise

        staged = stack.pop()
        if stack:
            stack[-1].extend(staged)
            return

        with self._lock:
            for handle, principal in staged:
                self._grants[handle].add(principal)

"""
Global Parameter Store.

Holds the single encrypted qualification threshold. Construction always
leaves a valid threshold in place, either from an authenticated input or
from the internal default; afterwards it is replaced only through
set_threshold's verified path.
"""

import threading
from dataclasses import dataclass
from typing import Union

from .ciphertext import ZERO_HANDLE, CiphertextRef


DEFAULT_THRESHOLD = 50


@dataclass(frozen=True)
class AuthenticatedThreshold:
    """Initial threshold supplied as a proof-checked encrypted input."""
    handle: str
    input_proof: bytes


@dataclass(frozen=True)
class DefaultThreshold:
    """
    Initial threshold taken from an internal constant.

    Bypasses proof verification; only accepted at construction.
    """
    value: int = DEFAULT_THRESHOLD


ThresholdInit = Union[AuthenticatedThreshold, DefaultThreshold]


def threshold_init_from_abi(handle: str, input_proof: bytes) -> ThresholdInit:
    """
    Map the constructor's raw (handle, proof) pair to a ThresholdInit.

    The pair (zero handle, empty proof) requests the default path; anything
    else is treated as an authenticated input and verified.
    """
    if not input_proof and (not handle or handle.lower() == ZERO_HANDLE):
        return DefaultThreshold()
    return AuthenticatedThreshold(handle=handle, input_proof=input_proof or b"")


class ThresholdStore:
    """Owner of the threshold slot."""

    def __init__(self, initial: CiphertextRef):
        if not isinstance(initial, CiphertextRef):
            raise TypeError("initial threshold must be a CiphertextRef")
        self._threshold = initial
        self._lock = threading.RLock()

    @property
    def threshold(self) -> CiphertextRef:
        with self._lock:
            return self._threshold

    def replace(self, ref: CiphertextRef) -> None:
        if not isinstance(ref, CiphertextRef):
            raise TypeError("threshold must be a CiphertextRef")
        with self._lock:
            self._threshold = ref

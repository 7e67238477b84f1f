"""
repository.py — Credential storage contract used by the authenticator.

The engine holds no storage of its own. Hosts pass a repository into each
user-facing call; anything that implements ``CredentialRepository`` works
(see ``twofactor_database.db_manager.SQLiteCredentialRepository``).

Counter state is optional. Repositories that also implement
``CounterStateRepository`` get HOTP mode and TOTP replay protection. The
TOTP time-step counter and the HOTP event counter are kept apart (see
``CounterKind``): one is around 5.8e7 today, the other starts at 0. Both
``replace_scratch_codes`` and ``save_counter_state`` are compare-and-set:
the caller passes the value it observed and the write only happens if the
stored value is still the same.
"""

from enum import Enum
from typing import Dict, Optional, Protocol, runtime_checkable
import threading

from twofactor_core.credentials import Credential, ScratchCodes
from twofactor_core.errors import InvalidParameterError, UnknownIdentityError


class CounterKind(str, Enum):
    TOTP = "totp"
    HOTP = "hotp"


def counter_kind(kind) -> CounterKind:
    try:
        return CounterKind(kind)
    except ValueError as e:
        raise InvalidParameterError(f"Unknown counter kind: {kind}") from e


@runtime_checkable
class CredentialRepository(Protocol):
    def load(self, identity: str) -> bytes:
        """Raw secret of ``identity``; raises UnknownIdentityError if absent."""
        ...

    def save_credential(self, identity: str, credential: Credential) -> None:
        ...

    def load_scratch_codes(self, identity: str) -> ScratchCodes:
        ...

    def replace_scratch_codes(self, identity: str, previous: ScratchCodes, updated: ScratchCodes) -> bool:
        ...


@runtime_checkable
class CounterStateRepository(Protocol):
    def load_counter_state(self, identity: str, kind: CounterKind) -> Optional[int]:
        ...

    def save_counter_state(
        self, identity: str, kind: CounterKind, last_matched_counter: int, previous: Optional[int]
    ) -> bool:
        """Store the counter only if the stored one is still ``previous`` and is lower."""
        ...


class _Entry:
    __slots__ = ("secret", "scratch_codes", "counters")

    def __init__(self, secret: bytes, scratch_codes: ScratchCodes):
        self.secret = secret
        self.scratch_codes = scratch_codes
        self.counters: Dict[CounterKind, Optional[int]] = {kind: None for kind in CounterKind}


class InMemoryCredentialRepository:
    """Thread-safe dict-backed repository, for tests and embedding."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def _get(self, identity: str) -> _Entry:
        try:
            return self._entries[identity]
        except KeyError:
            raise UnknownIdentityError(identity) from None

    def __contains__(self, identity: str) -> bool:
        with self._lock:
            return identity in self._entries

    def load(self, identity: str) -> bytes:
        with self._lock:
            return self._get(identity).secret

    def save_credential(self, identity: str, credential: Credential) -> None:
        # re-enrollment replaces the whole entry, counter state included
        with self._lock:
            self._entries[identity] = _Entry(credential.secret, credential.scratch_codes)

    def load_scratch_codes(self, identity: str) -> ScratchCodes:
        with self._lock:
            return self._get(identity).scratch_codes

    def replace_scratch_codes(self, identity: str, previous: ScratchCodes, updated: ScratchCodes) -> bool:
        with self._lock:
            entry = self._get(identity)
            if entry.scratch_codes != previous:
                return False
            entry.scratch_codes = updated
            return True

    def load_counter_state(self, identity: str, kind: CounterKind) -> Optional[int]:
        kind = counter_kind(kind)
        with self._lock:
            return self._get(identity).counters[kind]

    def save_counter_state(
        self, identity: str, kind: CounterKind, last_matched_counter: int, previous: Optional[int]
    ) -> bool:
        kind = counter_kind(kind)
        with self._lock:
            entry = self._get(identity)
            stored = entry.counters[kind]
            if stored != previous:
                return False
            if stored is not None and last_matched_counter <= stored:
                return False
            entry.counters[kind] = last_matched_counter
            return True

"""HMAC request authentication with timestamp freshness and nonce anti-replay.

Canonical signature:
    HMAC-SHA256(secret, "<x-ts>.<x-nonce>." + raw_body), hex encoded.

Flow:
1. Headers are checked for shape (64 hex chars, integer timestamp, nonce length)
2. Timestamp must be within the skew window of the server clock
3. Signature is recomputed over the exact raw body and compared in constant time
4. The (timestamp, nonce) pair is recorded; a pair seen before is a replay
"""

import hashlib
import hmac
import logging
import re
import secrets
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-signer-hmac"
TIMESTAMP_HEADER = "x-ts"
NONCE_HEADER = "x-nonce"

MIN_NONCE_LENGTH = 8
MAX_NONCE_LENGTH = 128

_HEX_DIGEST = re.compile(r"^[0-9a-fA-F]{%d}$" % (hashlib.sha256().digest_size * 2))
_TIMESTAMP = re.compile(r"^[0-9]{1,12}$")


class AuthFailure(str, Enum):
    """Reason an inbound request was rejected."""

    MISSING_HEADERS = "missing_headers"
    MALFORMED_SIGNATURE = "malformed_signature"
    MALFORMED_TIMESTAMP = "malformed_timestamp"
    MALFORMED_NONCE = "malformed_nonce"
    STALE_TIMESTAMP = "stale_timestamp"
    BAD_SIGNATURE = "bad_signature"
    REPLAYED_NONCE = "replayed_nonce"


@dataclass(frozen=True)
class AuthEnvelope:
    """Authentication material of a single request, taken verbatim from headers."""

    timestamp: Optional[str]
    nonce: Optional[str]
    signature: Optional[str]
    raw_body: bytes = b""


@dataclass(frozen=True)
class AuthResult:
    """Outcome of authenticating a request."""

    ok: bool
    reason: Optional[AuthFailure] = None

    @property
    def message(self) -> str:
        return "ok" if self.ok else f"authentication failed: {self.reason.value}"


class NonceCache(ABC):
    """Bounded-lifetime set of (timestamp, nonce) pairs already accepted."""

    @abstractmethod
    def check_and_record(self, timestamp: str, nonce: str) -> bool:
        """Record the pair and return True, or return False if it was already seen."""

    @abstractmethod
    def __len__(self) -> int:
        pass


class InMemoryNonceCache(NonceCache):
    """Thread-safe in-process replay cache with lazy expiry.

    Entries are kept in insertion order, so expired ones are always at the
    front and are dropped on every access. Suitable for a single instance.
    """

    def __init__(self, retention_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._seen: "OrderedDict[str, float]" = OrderedDict()
        self._lock = threading.Lock()

    def _evict_expired(self, now: float) -> None:
        cutoff = now - self.retention_seconds
        while self._seen:
            key, inserted_at = next(iter(self._seen.items()))
            if inserted_at > cutoff:
                break
            self._seen.popitem(last=False)

    def check_and_record(self, timestamp: str, nonce: str) -> bool:
        key = f"{timestamp}:{nonce}"
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            if key in self._seen:
                return False
            self._seen[key] = now
            return True

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired(self._clock())
            return len(self._seen)

    def clear(self) -> None:
        """Drop all entries (useful for testing)."""
        with self._lock:
            self._seen.clear()


def compute_signature(secret: str, timestamp: str, nonce: str, body: bytes) -> str:
    """Compute the hex HMAC-SHA256 over ``timestamp.nonce.`` + body."""
    message = f"{timestamp}.{nonce}.".encode() + body
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def sign_request(
    secret: str,
    body: bytes,
    timestamp: Optional[int] = None,
    nonce: Optional[str] = None,
) -> dict[str, str]:
    """Build authentication headers for an outgoing request.

    Used by upstream callers (and tests) to talk to the signer.
    """
    ts = str(int(time.time()) if timestamp is None else timestamp)
    nonce = nonce or secrets.token_hex(16)
    return {
        TIMESTAMP_HEADER: ts,
        NONCE_HEADER: nonce,
        SIGNATURE_HEADER: compute_signature(secret, ts, nonce, body),
    }


class Authenticator:
    """Verifies HMAC-signed requests.

    Usage:
        authenticator = Authenticator(secret, max_skew_seconds=60)
        result = authenticator.authenticate(envelope)
        if not result.ok:
            ...
    """

    def __init__(
        self,
        secret: str,
        max_skew_seconds: int = 60,
        nonce_cache: Optional[NonceCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the authenticator.

        Args:
            secret: Shared HMAC secret
            max_skew_seconds: Maximum tolerated |now - timestamp|
            nonce_cache: Replay cache (defaults to a 5 minute in-memory cache)
            clock: Wall-clock source in unix seconds
        """
        if not secret:
            raise ValueError("HMAC secret must not be empty")
        self._secret = secret
        self.max_skew_seconds = max_skew_seconds
        self.nonce_cache = nonce_cache or InMemoryNonceCache(retention_seconds=300)
        self._clock = clock

    def _reject(self, reason: AuthFailure) -> AuthResult:
        logger.warning(f"Rejected request: {reason.value}")
        return AuthResult(ok=False, reason=reason)

    def authenticate(self, envelope: AuthEnvelope) -> AuthResult:
        """Authenticate a request envelope.

        Returns:
            AuthResult; on success the nonce has already been consumed.
        """
        if not envelope.signature or not envelope.timestamp or not envelope.nonce:
            return self._reject(AuthFailure.MISSING_HEADERS)

        if not _HEX_DIGEST.fullmatch(envelope.signature):
            return self._reject(AuthFailure.MALFORMED_SIGNATURE)

        if not _TIMESTAMP.fullmatch(envelope.timestamp):
            return self._reject(AuthFailure.MALFORMED_TIMESTAMP)

        if not MIN_NONCE_LENGTH <= len(envelope.nonce) <= MAX_NONCE_LENGTH:
            return self._reject(AuthFailure.MALFORMED_NONCE)

        now = int(self._clock())
        if abs(now - int(envelope.timestamp)) > self.max_skew_seconds:
            return self._reject(AuthFailure.STALE_TIMESTAMP)

        expected = compute_signature(
            self._secret, envelope.timestamp, envelope.nonce, envelope.raw_body
        )
        if not hmac.compare_digest(bytes.fromhex(expected), bytes.fromhex(envelope.signature)):
            return self._reject(AuthFailure.BAD_SIGNATURE)

        # Consumed before any further processing, even if later steps fail
        if not self.nonce_cache.check_and_record(envelope.timestamp, envelope.nonce):
            return self._reject(AuthFailure.REPLAYED_NONCE)

        return AuthResult(ok=True)

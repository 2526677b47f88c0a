"""Signing orchestrator.

Runs one request through the signing pipeline:

    authenticate -> validate payload -> idempotency lookup (hit = done)
    -> policy -> resolve key -> normalize amount -> broadcast -> commit

Business failures are returned as a SigningOutcome carrying a FailureKind;
nothing in this path raises for an expected rejection.

Requests sharing an (operation kind, idempotency key) pair are serialized
in-process, so a concurrent duplicate waits and then returns the first
request's tx id without broadcasting. Across instances, the store's unique
constraint is the only ordering primitive.

A ledger call that exceeds the broadcast timeout has an unknown outcome: the
node may already have accepted it. The call is not cancelled. It keeps running
in the background and, if it yields a tx id, that tx id is committed. Until it
settles, requests with the same key are refused rather than rebroadcast.

Known gap: if the broadcast succeeds and the commit then fails, or the process
exits while a timed-out call is unsettled, the transfer may exist on chain but
not in the store. Both are logged at CRITICAL with a "RECONCILE:" prefix for
out-of-band reconciliation (scripts/reconcile.py) and are never retried here.
"""

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from pydantic import ValidationError

from tronsigner.auth import AuthEnvelope, Authenticator
from tronsigner.contracts import HDTransferBody, TransferBody
from tronsigner.hdwallet.base import (
    HDNotConfiguredError,
    KeyDerivationError,
    SigningIdentity,
)
from tronsigner.hdwallet.factory import HDKeyProvider
from tronsigner.hdwallet.trx import HotKeyProvider
from tronsigner.idempotency.models import OperationKind
from tronsigner.idempotency.store import CommitResult, IdempotencyStore, StoredTransfer
from tronsigner.policy import PolicyDimension, PolicyGate
from tronsigner.utils.amounts import InvalidAmountError, format_units, parse_units
from tronsigner.utils.locks import KeyedLocks, LockTimeoutError
from tronsigner.withdrawal.base import LedgerClient, TransferInstruction

logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    """Terminal failure states of the pipeline."""

    AUTHENTICATION = "authentication"
    INVALID_PAYLOAD = "invalid_payload"
    INVALID_AMOUNT = "invalid_amount"
    IDEMPOTENCY_CONFLICT = "idempotency_conflict"
    POLICY = "policy"
    NOT_CONFIGURED = "not_configured"
    KEY_DERIVATION = "key_derivation"
    BROADCAST = "broadcast"
    TIMEOUT = "timeout"
    INTERNAL = "internal"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    FailureKind.AUTHENTICATION: 401,
    FailureKind.INVALID_PAYLOAD: 400,
    FailureKind.INVALID_AMOUNT: 400,
    FailureKind.IDEMPOTENCY_CONFLICT: 409,
    FailureKind.POLICY: 403,
    FailureKind.NOT_CONFIGURED: 400,
    FailureKind.KEY_DERIVATION: 500,
    FailureKind.BROADCAST: 500,
    FailureKind.TIMEOUT: 504,
    FailureKind.INTERNAL: 500,
}


@dataclass
class SigningOutcome:
    """Result of a signing request."""

    success: bool
    tx_id: Optional[str] = None
    from_address: Optional[str] = None
    idempotent: bool = False
    failure: Optional[FailureKind] = None
    message: str = ""
    dimension: Optional[PolicyDimension] = None
    details: Optional[list[dict[str, Any]]] = None

    @property
    def http_status(self) -> int:
        return 200 if self.success else self.failure.http_status

    @classmethod
    def signed(
        cls, tx_id: str, from_address: Optional[str], idempotent: bool = False
    ) -> "SigningOutcome":
        return cls(success=True, tx_id=tx_id, from_address=from_address, idempotent=idempotent)

    @classmethod
    def failed(cls, kind: FailureKind, message: str, **extra) -> "SigningOutcome":
        return cls(success=False, failure=kind, message=message, **extra)


def request_fingerprint(body: TransferBody, decimals: int) -> str:
    """Digest of the fields that define a transfer, for duplicate-key checks."""
    try:
        amount: Union[int, str] = parse_units(body.amount, decimals)
    except InvalidAmountError:
        amount = body.amount
    canonical = json.dumps(
        {
            "to": body.to,
            "amount": amount,
            "tokenContract": body.token_contract,
            "derivationIndex": getattr(body, "derivation_index", None),
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode()).hexdigest()


def _validation_details(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]


class SigningOrchestrator:
    """Composes authentication, policy, key resolution and idempotency
    around the ledger client.

    Usage:
        orchestrator = SigningOrchestrator(...)
        outcome = await orchestrator.sign_transfer(OperationKind.HOT, envelope)
    """

    def __init__(
        self,
        authenticator: Authenticator,
        policy: PolicyGate,
        hot_keys: HotKeyProvider,
        hd_keys: HDKeyProvider,
        store: IdempotencyStore,
        ledger: LedgerClient,
        fee_limit_sun: int = 10_000_000,
        token_decimals: int = 6,
        broadcast_timeout: float = 30.0,
        lock_timeout: Optional[float] = None,
    ):
        self.authenticator = authenticator
        self.policy = policy
        self.hot_keys = hot_keys
        self.hd_keys = hd_keys
        self.store = store
        self.ledger = ledger
        self.fee_limit_sun = fee_limit_sun
        self.token_decimals = token_decimals
        self.broadcast_timeout = broadcast_timeout
        # A waiting duplicate must outlast the in-flight broadcast
        self.lock_timeout = lock_timeout if lock_timeout is not None else broadcast_timeout + 15.0
        self._locks = KeyedLocks()
        self._unsettled: dict[str, asyncio.Task] = {}

    @staticmethod
    def _lock_key(kind: OperationKind, idempotency_key: str) -> str:
        return f"{kind.value}:{idempotency_key}"

    @property
    def unsettled_count(self) -> int:
        """Timed-out ledger calls whose outcome is not yet known."""
        return len(self._unsettled)

    async def settle_pending(self, timeout: Optional[float] = None) -> None:
        """Wait for timed-out ledger calls to finish and be committed."""
        if self._unsettled:
            await asyncio.wait(list(self._unsettled.values()), timeout=timeout)

    async def sign_transfer(self, kind: OperationKind, envelope: AuthEnvelope) -> SigningOutcome:
        """Run the full pipeline for one request."""
        auth = self.authenticator.authenticate(envelope)
        if not auth.ok:
            return SigningOutcome.failed(FailureKind.AUTHENTICATION, auth.message)

        model = HDTransferBody if kind == OperationKind.HD else TransferBody
        try:
            body = model.model_validate_json(envelope.raw_body)
        except ValidationError as e:
            return SigningOutcome.failed(
                FailureKind.INVALID_PAYLOAD, "invalid payload", details=_validation_details(e)
            )

        lock_key = self._lock_key(kind, body.idempotency_key)
        try:
            async with self._locks.hold(lock_key, timeout=self.lock_timeout):
                return await self._execute(kind, body)
        except LockTimeoutError:
            return SigningOutcome.failed(
                FailureKind.TIMEOUT, "a request with this idempotencyKey is still in flight"
            )
        except Exception as e:
            logger.exception(f"Unexpected error handling {lock_key}")
            return SigningOutcome.failed(FailureKind.INTERNAL, str(e) or type(e).__name__)

    async def _execute(self, kind: OperationKind, body: TransferBody) -> SigningOutcome:
        fingerprint = request_fingerprint(body, self.token_decimals)

        stored = await self.store.get(kind, body.idempotency_key)
        if stored is not None:
            return self._replay(stored, fingerprint)

        if self._lock_key(kind, body.idempotency_key) in self._unsettled:
            logger.warning(
                f"Refusing {kind.value}:{body.idempotency_key}: earlier ledger call still unsettled"
            )
            return SigningOutcome.failed(
                FailureKind.TIMEOUT,
                "an earlier request with this idempotencyKey has an unknown outcome; "
                "reconcile before retrying",
            )

        decision = self.policy.check(body.to, body.token_contract)
        if not decision.allowed:
            return SigningOutcome.failed(
                FailureKind.POLICY, decision.message, dimension=decision.dimension
            )

        try:
            identity = self._resolve_identity(kind, body)
        except HDNotConfiguredError as e:
            return SigningOutcome.failed(FailureKind.NOT_CONFIGURED, str(e))
        except KeyDerivationError as e:
            logger.error(f"Key derivation failed: {e}")
            return SigningOutcome.failed(FailureKind.KEY_DERIVATION, str(e))

        try:
            amount_units = parse_units(body.amount, self.token_decimals)
        except InvalidAmountError as e:
            return SigningOutcome.failed(FailureKind.INVALID_AMOUNT, str(e))

        instruction = TransferInstruction(
            to=body.to,
            token_contract=body.token_contract,
            amount_units=amount_units,
            fee_limit_sun=self.fee_limit_sun,
        )

        logger.info(
            f"Signing {kind.value} key={body.idempotency_key} from={identity.address} "
            f"to={body.to} amount={format_units(amount_units, self.token_decimals)} "
            f"contract={body.token_contract}"
        )

        ledger_call = asyncio.ensure_future(self.ledger.transfer(identity, instruction))
        try:
            receipt = await asyncio.wait_for(
                asyncio.shield(ledger_call), timeout=self.broadcast_timeout
            )
        except asyncio.TimeoutError:
            return self._defer(kind, body, identity, fingerprint, ledger_call)
        except asyncio.CancelledError:
            self._defer(kind, body, identity, fingerprint, ledger_call)
            raise
        except Exception as e:
            logger.error(f"Broadcast failed for {kind.value}:{body.idempotency_key}: {e}")
            return SigningOutcome.failed(FailureKind.BROADCAST, str(e) or type(e).__name__)

        if receipt is None or not receipt.is_valid:
            raw = receipt.raw if receipt is not None else None
            logger.error(f"Broadcast rejected for {kind.value}:{body.idempotency_key}: {raw}")
            return SigningOutcome.failed(
                FailureKind.BROADCAST, f"broadcast failed: {json.dumps(raw, default=str)}"
            )

        return await self._commit(kind, body, identity, receipt.txid, fingerprint)

    def _defer(
        self,
        kind: OperationKind,
        body: TransferBody,
        identity: SigningIdentity,
        fingerprint: str,
        ledger_call: "asyncio.Future",
    ) -> SigningOutcome:
        key = self._lock_key(kind, body.idempotency_key)
        logger.critical(
            f"RECONCILE: ledger call for {key} from {identity.address} to {body.to} "
            f"exceeded {self.broadcast_timeout}s; outcome unknown"
        )
        self._unsettled[key] = asyncio.ensure_future(
            self._settle(kind, body, identity, fingerprint, ledger_call)
        )
        return SigningOutcome.failed(
            FailureKind.TIMEOUT,
            f"ledger call timed out after {self.broadcast_timeout}s; outcome unknown, "
            "reconcile before retrying",
        )

    async def _settle(
        self,
        kind: OperationKind,
        body: TransferBody,
        identity: SigningIdentity,
        fingerprint: str,
        ledger_call: "asyncio.Future",
    ) -> None:
        key = self._lock_key(kind, body.idempotency_key)
        try:
            try:
                receipt = await ledger_call
            except Exception as e:
                logger.error(f"Timed-out ledger call for {key} failed: {e}")
                return

            if receipt is None or not receipt.is_valid:
                raw = receipt.raw if receipt is not None else None
                logger.error(f"Timed-out broadcast for {key} rejected: {raw}")
                return

            logger.critical(
                f"RECONCILE: timed-out ledger call for {key} completed as {receipt.txid}"
            )
            await self._commit(kind, body, identity, receipt.txid, fingerprint)
        finally:
            self._unsettled.pop(key, None)

    def _resolve_identity(self, kind: OperationKind, body: TransferBody) -> SigningIdentity:
        if kind == OperationKind.HD:
            return self.hd_keys.derive(body.derivation_index)
        return self.hot_keys.identity()

    def _replay(self, stored: StoredTransfer, fingerprint: str) -> SigningOutcome:
        if stored.request_fingerprint and stored.request_fingerprint != fingerprint:
            logger.warning(
                f"idempotencyKey {stored.idempotency_key} reused with different transfer fields"
            )
            return SigningOutcome.failed(
                FailureKind.IDEMPOTENCY_CONFLICT,
                "idempotencyKey already used for a different transfer",
            )

        logger.info(f"Idempotent hit {stored.operation_kind.value}:{stored.idempotency_key}")
        return SigningOutcome.signed(stored.tx_id, stored.from_address, idempotent=True)

    async def _commit(
        self,
        kind: OperationKind,
        body: TransferBody,
        identity: SigningIdentity,
        tx_id: str,
        fingerprint: str,
    ) -> SigningOutcome:
        try:
            result = await self.store.commit(
                kind,
                body.idempotency_key,
                tx_id,
                from_address=identity.address,
                request_fingerprint=fingerprint,
            )
        except Exception as e:
            # Transfer is on chain; a retry here would double-spend
            logger.critical(
                f"RECONCILE: broadcast {tx_id} for {kind.value}:{body.idempotency_key} "
                f"was not recorded: {e}"
            )
            return SigningOutcome.signed(tx_id, identity.address)

        if result == CommitResult.ALREADY_EXISTS:
            stored = await self.store.get(kind, body.idempotency_key)
            if stored is not None and stored.tx_id != tx_id:
                logger.critical(
                    f"RECONCILE: {kind.value}:{body.idempotency_key} already committed as "
                    f"{stored.tx_id}; broadcast {tx_id} is a duplicate"
                )
                return SigningOutcome.signed(stored.tx_id, stored.from_address, idempotent=True)

        logger.info(f"Signed {kind.value}:{body.idempotency_key} tx={tx_id}")
        return SigningOutcome.signed(tx_id, identity.address)

"""Signing endpoints.

Both endpoints authenticate over the raw request body, so the body is read
as bytes and validated only after the HMAC check.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from tronsigner.auth import AuthEnvelope
from tronsigner.contracts import ErrorResponse, SignResponse
from tronsigner.idempotency.models import OperationKind
from tronsigner.services.orchestrator import SigningOrchestrator, SigningOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sign", tags=["Signing"])


def _to_response(outcome: SigningOutcome) -> JSONResponse:
    if outcome.success:
        body = SignResponse(
            tx_id=outcome.tx_id,
            from_address=outcome.from_address,
            idempotent=True if outcome.idempotent else None,
        ).model_dump(by_alias=True, exclude_none=True)
    else:
        body = ErrorResponse(
            error=outcome.message,
            kind=outcome.failure.value,
            dimension=outcome.dimension.value if outcome.dimension else None,
            details=outcome.details,
        ).model_dump(exclude_none=True)
    return JSONResponse(status_code=outcome.http_status, content=body)


async def _handle(
    request: Request,
    kind: OperationKind,
    x_ts: Optional[str],
    x_nonce: Optional[str],
    x_signer_hmac: Optional[str],
) -> JSONResponse:
    orchestrator: SigningOrchestrator = request.app.state.orchestrator
    envelope = AuthEnvelope(
        timestamp=x_ts,
        nonce=x_nonce,
        signature=x_signer_hmac,
        raw_body=await request.body(),
    )
    outcome = await orchestrator.sign_transfer(kind, envelope)
    return _to_response(outcome)


@router.post("/transfer")
async def sign_transfer(
    request: Request,
    x_ts: Optional[str] = Header(None),
    x_nonce: Optional[str] = Header(None),
    x_signer_hmac: Optional[str] = Header(None),
) -> JSONResponse:
    """Sign and broadcast a TRC20 transfer from the hot wallet.

    Body: {to, amount, tokenContract, idempotencyKey}
    """
    return await _handle(request, OperationKind.HOT, x_ts, x_nonce, x_signer_hmac)


@router.post("/hd/transfer")
async def sign_hd_transfer(
    request: Request,
    x_ts: Optional[str] = Header(None),
    x_nonce: Optional[str] = Header(None),
    x_signer_hmac: Optional[str] = Header(None),
) -> JSONResponse:
    """Sign and broadcast a TRC20 transfer from the HD child at derivationIndex.

    Body: {derivationIndex, to, amount, tokenContract, idempotencyKey}
    """
    return await _handle(request, OperationKind.HD, x_ts, x_nonce, x_signer_hmac)

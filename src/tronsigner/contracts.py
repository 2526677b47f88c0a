"""Request and response contracts for the signing endpoints.

Amounts are strings to keep floats out of the signing path. Field names
follow the upstream JSON (camelCase).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from tronsigner.hdwallet.base import MAX_DERIVATION_INDEX


class TransferBody(BaseModel):
    """Hot wallet transfer request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    to: StrictStr = Field(min_length=20, max_length=64)
    amount: StrictStr = Field(min_length=1, max_length=64)  # "12.345678"
    token_contract: StrictStr = Field(alias="tokenContract", min_length=30, max_length=64)
    idempotency_key: StrictStr = Field(alias="idempotencyKey", min_length=8, max_length=255)


class HDTransferBody(TransferBody):
    """Transfer from the HD child at ``derivationIndex``."""

    derivation_index: StrictInt = Field(alias="derivationIndex", ge=0, le=MAX_DERIVATION_INDEX)


class SignResponse(BaseModel):
    """Successful signing response."""

    model_config = ConfigDict(populate_by_name=True)

    tx_id: str = Field(serialization_alias="txId")
    from_address: Optional[str] = Field(default=None, serialization_alias="from")
    idempotent: Optional[bool] = None


class ErrorResponse(BaseModel):
    """Error body shared by all failures."""

    error: str
    kind: str
    dimension: Optional[str] = None
    details: Optional[list[dict]] = None

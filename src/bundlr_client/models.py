"""Models returned by the Bundlr client."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class BundlrModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return self.model_dump(mode="json", exclude_none=True)


class Tx(BundlrModel):
    """
    Normalized view of a chain transaction.

    ``amount`` is always in atomic units of the owning currency.
    """

    from_address: Optional[str] = None
    to_address: Optional[str] = None
    amount: Decimal = Decimal(0)
    pending: bool
    confirmed: bool

    @model_validator(mode="after")
    def _confirmed_is_not_pending(self) -> "Tx":
        if self.confirmed and self.pending:
            raise ValueError("a confirmed transaction cannot be pending")
        return self


class CreatedTx(BundlrModel):
    """A signed, not yet broadcast native transfer."""

    # Some chains only assign the id on broadcast.
    id: Optional[str] = None
    tx_data: Any


class FundResponse(BundlrModel):
    """Result of a funding operation."""

    id: str
    quantity: str
    reward: str
    target: str


class WithdrawResponse(BundlrModel):
    """Result of a withdrawal request."""

    currency: str
    amount: str
    nonce: int
    status: int
    body: Any = None


class UploadResponse(BundlrModel):
    """Result of an upload."""

    id: Optional[str] = None
    status: int
    body: Any = None

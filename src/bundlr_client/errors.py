"""Error types for the Bundlr client."""
from __future__ import annotations

from typing import Any, Optional


class BundlrError(Exception):
    """Base exception for the Bundlr client."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "BUNDLR_ERROR"
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class TransportError(BundlrError):
    """Non-2xx response from the bundler."""

    def __init__(self, context: Optional[str], status_code: int, body: Any = None):
        super().__init__(
            f"HTTP Error: {context}: {status_code} {body}",
            code="TRANSPORT_ERROR",
            details={"context": context, "status_code": status_code, "body": body},
        )
        self.context = context
        self.status_code = status_code
        self.body = body


class UnsupportedCurrencyError(BundlrError):
    """Currency is unknown to this client or to the bundler."""

    def __init__(self, currency: str, message: Optional[str] = None):
        super().__init__(
            message or f"Specified bundler does not support currency {currency}",
            code="UNSUPPORTED_CURRENCY",
            details={"currency": currency},
        )
        self.currency = currency


class SigningError(BundlrError):
    """Signing credential missing, rejected, or given malformed input."""

    def __init__(self, message: str, currency: Optional[str] = None):
        super().__init__(message, code="SIGNING_ERROR", details={"currency": currency})
        self.currency = currency


class ChainQueryError(BundlrError):
    """A chain provider call failed or returned something unusable."""

    def __init__(self, chain: str, message: str, code: Optional[str] = None):
        super().__init__(
            f"{chain}: {message}",
            code=code or "CHAIN_QUERY_ERROR",
            details={"chain": chain},
        )
        self.chain = chain


class NotFoundError(ChainQueryError):
    """The chain has no record of the requested transaction."""

    def __init__(self, chain: str, tx_id: str):
        super().__init__(chain, f"transaction not found: {tx_id}", code="NOT_FOUND")
        self.details["tx_id"] = tx_id
        self.tx_id = tx_id


class ValidationError(BundlrError):
    """Invalid argument supplied by the caller."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code="VALIDATION_ERROR", details={"field": field})
        self.field = field

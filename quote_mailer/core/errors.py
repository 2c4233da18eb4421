"""Error taxonomy for the quote pipeline.

Duplicate and already-processed requests are not errors; they come back as
a ``DeliveryResult`` with ``duplicate=True``.
"""

from typing import Optional


class QuoteMailerError(Exception):
    """Base class for every error raised by the quote pipeline."""

    status_code = 500

    def __init__(self, message: str, fingerprint: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.fingerprint = fingerprint


class ValidationError(QuoteMailerError):
    """Request body is missing required fields or has malformed values."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class RenderFailure(QuoteMailerError):
    """The PDF could not be generated or stored. Safe to retry."""


class DeliveryFailure(QuoteMailerError):
    """Mail could not be sent.

    Raised for a single recipient by the sender, and by the orchestrator
    only when every attempted send failed.
    """

    def __init__(self, message: str, recipient: Optional[str] = None,
                 fingerprint: Optional[str] = None) -> None:
        super().__init__(message, fingerprint=fingerprint)
        self.recipient = recipient


class TokenInvalid(QuoteMailerError):
    """Download token is malformed, forged or expired."""

    status_code = 403

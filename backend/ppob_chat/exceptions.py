"""
PPOB Exception Hierarchy

Error codes use the ppob: prefix so API clients can branch on them.
"""
from typing import Optional, Dict, Any


class PPOBError(Exception):
    """
    Base exception for storefront errors.

    Carries an HTTP status code used by the application-level exception
    handler in main.py.
    """

    status_code: int = 400

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ParseError(PPOBError):
    """
    Chat command could not be turned into a structured intent.

    Examples:
    - Model call failed or timed out
    - Model reply contained no JSON object
    - JSON did not validate as an intent
    """

    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("ppob:intent:parse_failed", message, details)


class UpstreamUnavailableError(PPOBError):
    """Reseller API could not be reached or answered garbage."""

    status_code = 503

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("ppob:upstream:unavailable", message, details)


class FulfillmentError(PPOBError):
    """
    Reseller refused or failed to place a fulfillment order.

    Raised after payment has been captured, so callers flag the
    transaction for manual review instead of failing it.
    """

    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("ppob:upstream:fulfillment_failed", message, details)


class PaymentGatewayError(PPOBError):
    """
    Payment gateway did not return a usable checkout.

    Examples:
    - success=false in the gateway body
    - Non-2xx HTTP status
    - Network error or timeout
    """

    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("ppob:payment:gateway_failed", message, details)


class TransactionNotFoundError(PPOBError):
    """No transaction matches the given id or gateway reference."""

    status_code = 404

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("ppob:transaction:not_found", message, details)


class InvalidTransactionRequestError(PPOBError):
    """Transaction request or admin action is not valid for the current state."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("ppob:transaction:invalid", message, details)

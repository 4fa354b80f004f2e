"""Exception hierarchy for TaxCloud calls and the order tax ledger.

Provider failures are split in two: ``TransportError`` when TaxCloud could
not be reached (timeouts, refused connections, 5xx without a payload) and a
``ProviderBusinessError`` subclass when TaxCloud answered and rejected the
request. Business errors carry the provider message verbatim so it can be
shown to the merchant.
"""


class TaxCloudError(Exception):
    """Base exception for every TaxCloud operation."""

    retryable = False

    def __init__(self, message: str, operation: str = "", status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.status_code = status_code


class TransportError(TaxCloudError):
    """Raised when the request never produced a usable provider answer."""

    retryable = True


class ProviderBusinessError(TaxCloudError):
    """Raised when TaxCloud reports an error for the request."""


class PingError(ProviderBusinessError):
    """Raised when TaxCloud rejects the configured credentials."""


class AddressError(ProviderBusinessError):
    """Raised when TaxCloud cannot verify an address."""


class TaxLookupError(ProviderBusinessError):
    """Raised when a cart lookup is rejected."""


class AuthorizationError(ProviderBusinessError):
    """Raised when an authorize-only request is rejected."""


class CaptureError(ProviderBusinessError):
    """Raised when an authorize-with-capture or capture request is rejected."""


class ReturnError(ProviderBusinessError):
    """Raised when a return (refund) request is rejected."""


class CertificateError(ProviderBusinessError):
    """Raised when an exemption certificate operation is rejected."""


class LocationError(ProviderBusinessError):
    """Raised when the business locations cannot be listed."""


class BatchError(ProviderBusinessError):
    """Raised when an offline transaction batch is rejected."""


class BatchLimitError(TaxCloudError, ValueError):
    """Raised before sending a batch larger than the provider accepts."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Batch of {size} transactions exceeds the limit of {limit}",
            operation="add_transactions",
        )
        self.size = size
        self.limit = limit


class InvalidStateError(Exception):
    """Raised when an operation violates the order tax state machine."""

    def __init__(self, message: str, current_status: str = "", target_status: str = ""):
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class ConfigurationError(Exception):
    """Raised when TaxCloud credentials or settings are missing."""

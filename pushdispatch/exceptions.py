"""
Tool: Push Dispatch Errors
Purpose: Exception hierarchy for validation, encryption and transport failures

Usage:
    from pushdispatch.exceptions import PushError, PayloadTooLarge

Propagation:
    - Validation errors are raised before any network activity
    - Encryption errors fail the single notification being built
    - Transport errors are downgraded to failed DeliveryResults by flush()
"""


class PushError(Exception):
    """Base class for all push dispatch failures."""


class PushValidationError(PushError, ValueError):
    """Raised synchronously when a notification or batch is rejected."""


class PayloadTooLarge(PushValidationError):
    """Raised when a payload exceeds the maximum encryptable length."""

    def __init__(self, length: int, limit: int):
        super().__init__(f"Size of payload must not be greater than {limit} octets (got {length}).")
        self.length = length
        self.limit = limit


class MissingAuthorizationKey(PushValidationError):
    """Raised when a queued service type requires an API key and none is configured."""

    def __init__(self, service_type: str):
        super().__init__(f"No {service_type} API key specified.")
        self.service_type = service_type


class InvalidNotificationError(PushValidationError, TypeError):
    """Raised when send_notification() is called with something other than a Notification."""


class EncryptionError(PushError):
    """Raised when payload encryption fails."""


class InvalidKeyMaterial(EncryptionError, ValueError):
    """Raised when a subscriber public key or auth secret is malformed."""


class TransportError(PushError):
    """Raised by a transport when a request fails at the network or protocol level."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url

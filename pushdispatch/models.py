"""
Tool: Push Dispatch Models
Purpose: Data structures for notifications, encryption output and delivery results

Usage:
    from pushdispatch.models import (
        Notification,
        EncryptionEnvelope,
        PushRequest,
        PushResponse,
        DeliveryResult,
        FlushReport,
    )
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from pushdispatch.exceptions import InvalidNotificationError


# Service type for standards-compliant push services (no special headers)
STANDARD_SERVICE = "standard"


@dataclass(frozen=True)
class Notification:
    """
    A single push message bound for one subscription endpoint.

    A payload is encrypted only when both subscriber keys are present;
    otherwise it is sent as a plain body. No payload means a "tickle" push.
    """

    endpoint: str
    payload: bytes | None = None
    user_public_key: bytes | None = None  # 65-byte uncompressed P-256 point
    user_auth_secret: bytes | None = None  # 16-byte auth secret

    def __post_init__(self) -> None:
        if not isinstance(self.endpoint, str) or not self.endpoint:
            raise InvalidNotificationError("Notification endpoint must be a non-empty URL string.")

        if isinstance(self.payload, str):
            object.__setattr__(self, "payload", self.payload.encode("utf-8"))

        for name in ("payload", "user_public_key", "user_auth_secret"):
            value = getattr(self, name)
            # bool is rejected explicitly: old call shapes passed a flush flag here
            if value is not None and (isinstance(value, bool) or not isinstance(value, (bytes, bytearray))):
                raise InvalidNotificationError(
                    f"Notification.{name} must be bytes or None, got {type(value).__name__}."
                )
            if isinstance(value, bytearray):
                object.__setattr__(self, name, bytes(value))

    @property
    def has_payload(self) -> bool:
        return self.payload is not None

    @property
    def is_encryptable(self) -> bool:
        """True if the payload can be encrypted for the subscriber."""
        return (
            self.payload is not None
            and self.user_public_key is not None
            and self.user_auth_secret is not None
        )


@dataclass(frozen=True)
class EncryptionEnvelope:
    """Output of one payload encryption. Never cached or reused."""

    cipher_text: bytes  # includes the 16-byte GCM tag
    salt: bytes
    ephemeral_public_key: bytes


@dataclass(frozen=True)
class PushRequest:
    """Wire-level request for a single notification."""

    url: str
    headers: dict[str, str]
    body: bytes = b""


@dataclass
class PushResponse:
    """Response returned by a transport."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class DeliveryResult:
    """
    Result of attempting to deliver one notification.

    A result with no status code means the request never got a response
    (transport failure or request build failure).
    """

    endpoint: str
    service_type: str = STANDARD_SERVICE
    status_code: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def delivered(self) -> bool:
        """True if the push service answered."""
        return self.status_code is not None and self.error is None

    @property
    def success(self) -> bool:
        return self.delivered and 200 <= self.status_code < 300

    @property
    def should_unsubscribe(self) -> bool:
        """True if the endpoint is gone (404/410) and should be removed."""
        return self.status_code in (404, 410)

    @classmethod
    def from_response(cls, endpoint: str, service_type: str, response: PushResponse) -> "DeliveryResult":
        return cls(
            endpoint=endpoint,
            service_type=service_type,
            status_code=response.status_code,
            headers=dict(response.headers),
        )

    @classmethod
    def from_error(cls, endpoint: str, service_type: str, error: Exception) -> "DeliveryResult":
        return cls(endpoint=endpoint, service_type=service_type, error=str(error) or type(error).__name__)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        data = asdict(self)
        data["success"] = self.success
        data["should_unsubscribe"] = self.should_unsubscribe
        return data


@dataclass
class FlushReport:
    """
    Per-notification results of one flush.

    Ordered by service-type group (first enqueue of each type), then by
    enqueue order within the group.
    """

    results: list[DeliveryResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def success(self) -> bool:
        """True if every notification in the batch was accepted."""
        return all(r.success for r in self.results)

    def __iter__(self):
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, index: int) -> DeliveryResult:
        return self.results[index]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }

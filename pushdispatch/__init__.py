"""Web Push Dispatch: encrypted push delivery for Web Push endpoints

Philosophy:
    A push message is only as private as its weakest request. Every payload
    is padded and encrypted for the one subscriber that can read it, and a
    batch never hides a single delivery failure behind a summary.

Design Principles:
    1. One Wire Format: aesgcm content coding, reproduced byte-for-byte
    2. Fixed Envelope: automatic padding hides payload length by default
    3. Isolated Failures: one broken endpoint never aborts a flush
    4. Config as Data: legacy service prefixes live in args/push.yaml

Components:
    push/: Payload encryption, endpoint classification, request building,
           transports and the WebPush dispatcher
    queue/: In-memory notification queue grouped by service type
    config.py: Typed configuration (args/push.yaml + environment)
    logging_config.py: structlog setup

Usage:
    from pushdispatch import Notification, WebPush

    push = WebPush(api_keys={"GCM": "server-key"})
    push.send_notification(Notification(endpoint=url, payload=b"hi",
                                        user_public_key=p256dh,
                                        user_auth_secret=auth))
    report = push.flush()
"""

from pathlib import Path


# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
CONFIG_PATH = ARGS_DIR / "push.yaml"


from pushdispatch.exceptions import (  # noqa: E402
    EncryptionError,
    InvalidKeyMaterial,
    InvalidNotificationError,
    MissingAuthorizationKey,
    PayloadTooLarge,
    PushError,
    PushValidationError,
    TransportError,
)
from pushdispatch.models import (  # noqa: E402
    DeliveryResult,
    EncryptionEnvelope,
    FlushReport,
    Notification,
    PushRequest,
    PushResponse,
    STANDARD_SERVICE,
)
from pushdispatch.push.web_push import WebPush  # noqa: E402

__all__ = [
    "PROJECT_ROOT",
    "ARGS_DIR",
    "CONFIG_PATH",
    "STANDARD_SERVICE",
    "Notification",
    "EncryptionEnvelope",
    "PushRequest",
    "PushResponse",
    "DeliveryResult",
    "FlushReport",
    "WebPush",
    "PushError",
    "PushValidationError",
    "PayloadTooLarge",
    "MissingAuthorizationKey",
    "InvalidNotificationError",
    "EncryptionError",
    "InvalidKeyMaterial",
    "TransportError",
]

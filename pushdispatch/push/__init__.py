"""Push notification delivery components."""

from pushdispatch.push.classifier import EndpointClassifier
from pushdispatch.push.encryption import (
    MAX_PAYLOAD_LENGTH,
    PADDED_PAYLOAD_LENGTH,
    encrypt,
    pad_payload,
)
from pushdispatch.push.request_builder import build_request
from pushdispatch.push.transport import (
    HttpxTransport,
    MultiplexedHttpxTransport,
    MultiplexedPushTransport,
    PushTransport,
)
from pushdispatch.push.web_push import WebPush

__all__ = [
    "MAX_PAYLOAD_LENGTH",
    "PADDED_PAYLOAD_LENGTH",
    "pad_payload",
    "encrypt",
    "EndpointClassifier",
    "build_request",
    "PushTransport",
    "MultiplexedPushTransport",
    "HttpxTransport",
    "MultiplexedHttpxTransport",
    "WebPush",
]

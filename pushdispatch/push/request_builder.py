"""
Tool: Push Request Builder
Purpose: Turn a Notification into wire headers and body for its service type

Usage:
    from pushdispatch.push.request_builder import build_request

    request = build_request(notification, "standard", ttl=86400)

Request shapes:
    encrypted  payload + both keys: aesgcm body, Encryption/Crypto-Key headers
    plain      payload without keys: literal payload body
    tickle     no payload: empty body, Content-Length 0
Legacy services additionally get URL migration and an Authorization header.
"""

from pushdispatch.config import ServiceConfig
from pushdispatch.exceptions import MissingAuthorizationKey
from pushdispatch.models import Notification, PushRequest
from pushdispatch.push.encryption import encrypt, pad_payload, urlsafe_b64


def build_request(
    notification: Notification,
    service_type: str,
    *,
    ttl: int,
    automatic_padding: bool = True,
    service: ServiceConfig | None = None,
    api_key: str | None = None,
) -> PushRequest:
    """
    Build the request for one notification.

    Args:
        notification: The notification to send
        service_type: Tag from EndpointClassifier
        ttl: Time to live in seconds
        automatic_padding: Pad payloads to the fixed envelope size
        service: Legacy service config, None for standard endpoints
        api_key: API key for the legacy service

    Raises:
        PayloadTooLarge, InvalidKeyMaterial, EncryptionError: payload cannot be encrypted
        MissingAuthorizationKey: service requires an API key and none was given
    """
    endpoint = notification.endpoint

    if notification.is_encryptable:
        padded = pad_payload(notification.payload, automatic_padding)
        envelope = encrypt(padded, notification.user_public_key, notification.user_auth_secret)

        headers = {
            "Content-Length": str(len(envelope.cipher_text)),
            "Content-Type": "application/octet-stream",
            "Content-Encoding": "aesgcm",
            "Encryption": f'keyid="p256dh";salt="{urlsafe_b64(envelope.salt)}"',
            "Crypto-Key": f'keyid="p256dh";dh="{urlsafe_b64(envelope.ephemeral_public_key)}"',
            "TTL": str(ttl),
        }
        body = envelope.cipher_text
    elif notification.has_payload:
        # No subscriber keys: the payload travels unencrypted
        body = notification.payload
        headers = {
            "Content-Length": str(len(body)),
            "TTL": str(ttl),
        }
    else:
        body = b""
        headers = {
            "Content-Length": "0",
            "TTL": str(ttl),
        }

    if service is not None and service.requires_api_key:
        if not api_key:
            raise MissingAuthorizationKey(service_type)

        if service.delivery_url and endpoint.startswith(service.prefix):
            endpoint = service.delivery_url + endpoint[len(service.prefix):]

        headers["Authorization"] = f"key={api_key}"

    return PushRequest(url=endpoint, headers=headers, body=body)

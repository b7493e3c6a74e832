"""
Tool: Web Push Payload Encryption
Purpose: Pad and encrypt push payloads with the "aesgcm" content coding

Usage:
    from pushdispatch.push.encryption import pad_payload, encrypt

    padded = pad_payload(b'{"title": "Hi"}', automatic=True)
    envelope = encrypt(padded, user_public_key, user_auth_secret)

Algorithm (draft-ietf-webpush-encryption, aesgcm):
    1. One-time P-256 keypair, ECDH with the subscriber public key
    2. PRK  = HKDF-SHA256(salt=auth_secret, ikm=shared_secret, "Content-Encoding: auth\\0")
    3. CEK  = HKDF-SHA256(salt=salt, ikm=PRK, "Content-Encoding: aesgcm\\0" || context)[:16]
       NONCE = HKDF-SHA256(salt=salt, ikm=PRK, "Content-Encoding: nonce\\0" || context)[:12]
       context = "P-256\\0" || len16(user_pub) || user_pub || len16(local_pub) || local_pub
    4. AES-128-GCM(CEK, NONCE, padded_payload), tag appended

Dependencies:
    pip install cryptography
"""

import base64
import os
import struct

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from pushdispatch.exceptions import EncryptionError, InvalidKeyMaterial, PayloadTooLarge
from pushdispatch.models import EncryptionEnvelope


# Largest plaintext that fits one 4096-byte record (2-byte pad prefix, 16-byte tag)
MAX_PAYLOAD_LENGTH = 4078
PADDED_PAYLOAD_LENGTH = MAX_PAYLOAD_LENGTH + 2

PUBLIC_KEY_LENGTH = 65
AUTH_SECRET_LENGTH = 16
SALT_LENGTH = 16
CONTENT_KEY_LENGTH = 16
NONCE_LENGTH = 12

CURVE_LABEL = b"P-256"
AUTH_INFO = b"Content-Encoding: auth\x00"
CONTENT_KEY_INFO = b"Content-Encoding: aesgcm\x00"
NONCE_INFO = b"Content-Encoding: nonce\x00"


def pad_payload(payload: bytes, automatic: bool = True) -> bytes:
    """
    Build the plaintext record for a payload.

    The record is a 2-byte big-endian padding length, that many zero
    bytes, then the payload. With automatic padding every record is
    exactly PADDED_PAYLOAD_LENGTH bytes, so ciphertext length reveals
    nothing about the payload.

    Raises:
        PayloadTooLarge: payload is longer than MAX_PAYLOAD_LENGTH
    """
    payload_length = len(payload)
    if payload_length > MAX_PAYLOAD_LENGTH:
        raise PayloadTooLarge(payload_length, MAX_PAYLOAD_LENGTH)

    pad_length = MAX_PAYLOAD_LENGTH - payload_length if automatic else 0
    return struct.pack("!H", pad_length) + b"\x00" * pad_length + bytes(payload)


def load_public_key(data: bytes) -> ec.EllipticCurvePublicKey:
    """
    Parse a subscriber public key (uncompressed P-256 point).

    Raises:
        InvalidKeyMaterial: wrong length, compressed form, or not on the curve
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != PUBLIC_KEY_LENGTH or data[0] != 0x04:
        raise InvalidKeyMaterial(
            f"Subscriber public key must be a {PUBLIC_KEY_LENGTH}-byte uncompressed P-256 point."
        )
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), bytes(data))
    except ValueError as e:
        raise InvalidKeyMaterial(f"Subscriber public key is not a valid P-256 point: {e}") from e


def validate_auth_secret(data: bytes) -> bytes:
    """Check that a subscriber auth secret has the expected length."""
    if not isinstance(data, (bytes, bytearray)) or len(data) != AUTH_SECRET_LENGTH:
        raise InvalidKeyMaterial(f"Subscriber auth secret must be {AUTH_SECRET_LENGTH} bytes.")
    return bytes(data)


def encode_public_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )


def urlsafe_b64(data: bytes) -> str:
    """URL-safe base64 without padding, as used in Web Push headers."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _hkdf(salt: bytes, ikm: bytes, info: bytes, length: int) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=length, salt=salt, info=info).derive(ikm)


def _length_prefixed(key: bytes) -> bytes:
    return struct.pack("!H", len(key)) + key


def _key_context(user_public_key: bytes, local_public_key: bytes) -> bytes:
    # Binds both public keys into the CEK and nonce derivation
    return CURVE_LABEL + b"\x00" + _length_prefixed(user_public_key) + _length_prefixed(local_public_key)


def encrypt(
    padded_payload: bytes,
    user_public_key: bytes,
    user_auth_secret: bytes,
    *,
    local_private_key: ec.EllipticCurvePrivateKey | None = None,
    salt: bytes | None = None,
) -> EncryptionEnvelope:
    """
    Encrypt a padded payload for one subscriber.

    Args:
        padded_payload: Output of pad_payload()
        user_public_key: Subscriber p256dh key (65 bytes, uncompressed)
        user_auth_secret: Subscriber auth secret (16 bytes)
        local_private_key: One-time key; generated when omitted
        salt: 16-byte salt; generated when omitted

    Returns:
        EncryptionEnvelope with cipher_text, salt and ephemeral_public_key

    Raises:
        InvalidKeyMaterial: malformed subscriber key or auth secret
        EncryptionError: any other cryptographic failure
    """
    subscriber_key = load_public_key(user_public_key)
    auth_secret = validate_auth_secret(user_auth_secret)

    if salt is None:
        salt = os.urandom(SALT_LENGTH)
    elif len(salt) != SALT_LENGTH:
        raise EncryptionError(f"Salt must be {SALT_LENGTH} bytes.")

    try:
        if local_private_key is None:
            local_private_key = ec.generate_private_key(ec.SECP256R1())
        local_public_key = encode_public_key(local_private_key.public_key())

        shared_secret = local_private_key.exchange(ec.ECDH(), subscriber_key)
        prk = _hkdf(auth_secret, shared_secret, AUTH_INFO, 32)

        context = _key_context(bytes(user_public_key), local_public_key)
        content_key = _hkdf(salt, prk, CONTENT_KEY_INFO + context, CONTENT_KEY_LENGTH)
        nonce = _hkdf(salt, prk, NONCE_INFO + context, NONCE_LENGTH)

        cipher_text = AESGCM(content_key).encrypt(nonce, bytes(padded_payload), None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise EncryptionError(f"Payload encryption failed: {e}") from e

    return EncryptionEnvelope(
        cipher_text=cipher_text,
        salt=salt,
        ephemeral_public_key=local_public_key,
    )

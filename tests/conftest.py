"""Shared test fixtures for pushdispatch tests.

This module provides common fixtures used across all test modules:
- Subscriber key material (P-256 keypair + auth secret)
- A standards-based client decrypter for round-trip checks
- In-memory fake transports (sequential and multiplexed)

Usage:
    def test_something(subscriber, fake_transport):
        ...
"""

import os
import struct
from collections.abc import Callable
from dataclasses import dataclass

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from pushdispatch.exceptions import TransportError
from pushdispatch.models import PushResponse
from pushdispatch.push.transport import MultiplexedPushTransport, PushTransport


# ─────────────────────────────────────────────────────────────────────────────
# Subscriber Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class Subscriber:
    """A browser-side subscription: private key plus what the server receives."""

    private_key: ec.EllipticCurvePrivateKey
    public_key: bytes
    auth_secret: bytes


def make_subscriber() -> Subscriber:
    private_key = ec.generate_private_key(ec.SECP256R1())
    public_key = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    return Subscriber(private_key=private_key, public_key=public_key, auth_secret=os.urandom(16))


@pytest.fixture
def subscriber() -> Subscriber:
    """Fresh subscriber keypair and auth secret."""
    return make_subscriber()


@pytest.fixture
def subscriber_factory() -> Callable[[], Subscriber]:
    return make_subscriber


# ─────────────────────────────────────────────────────────────────────────────
# Client Decryption
# ─────────────────────────────────────────────────────────────────────────────


def _hkdf(salt: bytes, ikm: bytes, info: bytes, length: int) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=length, salt=salt, info=info).derive(ikm)


def client_decrypt(
    subscriber: Subscriber,
    cipher_text: bytes,
    salt: bytes,
    server_public_key: bytes,
) -> bytes:
    """Decrypt an aesgcm record the way a receiving browser does and strip padding."""
    server_key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), server_public_key)
    shared_secret = subscriber.private_key.exchange(ec.ECDH(), server_key)
    prk = _hkdf(subscriber.auth_secret, shared_secret, b"Content-Encoding: auth\x00", 32)

    context = (
        b"P-256\x00"
        + struct.pack("!H", len(subscriber.public_key)) + subscriber.public_key
        + struct.pack("!H", len(server_public_key)) + server_public_key
    )
    key = _hkdf(salt, prk, b"Content-Encoding: aesgcm\x00" + context, 16)
    nonce = _hkdf(salt, prk, b"Content-Encoding: nonce\x00" + context, 12)

    record = AESGCM(key).decrypt(nonce, cipher_text, None)
    pad_length = struct.unpack("!H", record[:2])[0]
    assert record[2:2 + pad_length] == b"\x00" * pad_length, "padding must be zero bytes"
    return record[2 + pad_length:]


@pytest.fixture
def decrypt() -> Callable[..., bytes]:
    return client_decrypt


# ─────────────────────────────────────────────────────────────────────────────
# Transport Fixtures
# ─────────────────────────────────────────────────────────────────────────────


class FakeTransport(PushTransport):
    """Sequential transport that records requests and replays scripted outcomes.

    Outcomes are consumed in order; an int is a status code, an exception is
    raised. When the script runs out every request gets 201.
    """

    def __init__(self, outcomes: list | None = None):
        self.outcomes = list(outcomes or [])
        self.requests: list[tuple[str, dict[str, str], bytes]] = []
        self.closed = False

    def post(self, url, headers, body):
        self.requests.append((url, dict(headers), body))
        outcome = self.outcomes.pop(0) if self.outcomes else 201
        if isinstance(outcome, Exception):
            raise outcome
        return PushResponse(status_code=outcome, headers={"location": f"{url}/msg"})

    def close(self):
        self.closed = True


class FakeMultiplexedTransport(MultiplexedPushTransport):
    """Multiplexed transport that only sends when flush_pending() is called."""

    def __init__(self, outcomes: list | None = None):
        self.outcomes = list(outcomes or [])
        self.submitted: list[tuple[str, dict[str, str], bytes]] = []
        self.requests: list[tuple[str, dict[str, str], bytes]] = []
        self.flush_calls = 0

    @property
    def pending_count(self):
        return len(self.submitted)

    def submit(self, url, headers, body):
        self.submitted.append((url, dict(headers), body))

    def flush_pending(self):
        self.flush_calls += 1
        pending, self.submitted = self.submitted, []
        results = []
        for url, headers, body in pending:
            self.requests.append((url, headers, body))
            outcome = self.outcomes.pop(0) if self.outcomes else 201
            if isinstance(outcome, TransportError):
                results.append(outcome)
            else:
                results.append(PushResponse(status_code=outcome, headers={}))
        return results


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def transport_factory() -> type[FakeTransport]:
    """FakeTransport class, for tests that script outcomes."""
    return FakeTransport


@pytest.fixture
def multiplexed_transport_factory() -> type[FakeMultiplexedTransport]:
    return FakeMultiplexedTransport


@pytest.fixture
def fake_multiplexed_transport() -> FakeMultiplexedTransport:
    return FakeMultiplexedTransport()

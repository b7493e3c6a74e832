"""Tests for the WebPush dispatcher (enqueue, validation, flush and result collection)."""

import pytest

from pushdispatch.config import ServiceConfig
from pushdispatch.exceptions import (
    EncryptionError,
    InvalidKeyMaterial,
    InvalidNotificationError,
    MissingAuthorizationKey,
    PayloadTooLarge,
    TransportError,
)
from pushdispatch.models import STANDARD_SERVICE, FlushReport, Notification
from pushdispatch.push import request_builder
from pushdispatch.push.transport import HttpxTransport
from pushdispatch.push.web_push import WebPush


ENDPOINT = "https://example.com/push/abc123"
GCM_ENDPOINT = "https://android.googleapis.com/gcm/send/XYZ"


@pytest.fixture
def push(fake_transport):
    return WebPush(transport=fake_transport)


# =============================================================================
# Construction and configuration
# =============================================================================


class TestConfiguration:
    def test_defaults(self, fake_transport):
        push = WebPush(transport=fake_transport)
        assert push.ttl == 2419200
        assert push.automatic_padding is True
        assert push.api_keys == {}
        assert "GCM" in push.services
        assert push.transport is fake_transport

    def test_default_transport_is_httpx(self):
        push = WebPush(timeout=5)
        assert isinstance(push.transport, HttpxTransport)
        assert push.transport.timeout == 5
        push.transport.close()

    def test_timeout_is_read_only(self, push):
        assert push.timeout == 30
        with pytest.raises(AttributeError):
            push.timeout = 5

    def test_ttl_setter_validates(self, push):
        push.ttl = 60
        assert push.ttl == 60
        with pytest.raises(ValueError):
            push.ttl = -1
        with pytest.raises(ValueError):
            push.ttl = True

    def test_set_api_key(self, push):
        push.set_api_key("GCM", "abc")
        assert push.api_keys == {"GCM": "abc"}

    def test_api_keys_copy_is_detached(self, push):
        keys = push.api_keys
        keys["GCM"] = "mutated"
        assert push.api_keys == {}

    def test_configure_services_reloads_classifier(self, push):
        push.configure_services({"ACME": {"prefix": "https://push.acme.test/", "requires_api_key": False}})

        assert push.classify("https://push.acme.test/abc") == "ACME"
        assert push.classify(GCM_ENDPOINT) == STANDARD_SERVICE
        assert isinstance(push.services["ACME"], ServiceConfig)


# =============================================================================
# Enqueue
# =============================================================================


class TestSendNotification:
    def test_enqueue_does_not_send(self, push, fake_transport):
        assert push.send_notification(Notification(ENDPOINT)) is None
        assert push.pending_count == 1
        assert fake_transport.requests == []

    def test_flush_flag_sends_immediately(self, push, fake_transport):
        report = push.send_notification(Notification(ENDPOINT), flush=True)

        assert isinstance(report, FlushReport)
        assert len(fake_transport.requests) == 1
        assert push.pending_count == 0

    def test_oversized_payload_rejected(self, push, fake_transport):
        with pytest.raises(PayloadTooLarge):
            push.send_notification(Notification(ENDPOINT, b"x" * 4079))
        assert push.pending_count == 0

    def test_plain_oversized_payload_rejected(self, push):
        # The size limit applies whether or not keys are present
        with pytest.raises(PayloadTooLarge):
            push.send_notification(Notification(ENDPOINT, b"x" * 5000))

    def test_invalid_public_key_rejected_at_enqueue(self, push, subscriber):
        notification = Notification(ENDPOINT, b"hi", b"\x04" + b"\x01" * 64, subscriber.auth_secret)
        with pytest.raises(InvalidKeyMaterial):
            push.send_notification(notification)
        assert push.pending_count == 0

    def test_invalid_auth_secret_rejected_at_enqueue(self, push, subscriber):
        notification = Notification(ENDPOINT, b"hi", subscriber.public_key, b"short")
        with pytest.raises(InvalidKeyMaterial):
            push.send_notification(notification)

    def test_old_positional_call_shape_rejected(self, push):
        with pytest.raises(InvalidNotificationError):
            push.send_notification(ENDPOINT)

    def test_bool_auth_token_rejected(self):
        with pytest.raises(InvalidNotificationError):
            Notification(ENDPOINT, b"payload", None, True)

    def test_str_payload_encoded(self):
        assert Notification(ENDPOINT, "héllo").payload == "héllo".encode("utf-8")


# =============================================================================
# Flush
# =============================================================================


class TestFlush:
    def test_empty_queue_returns_false(self, push, fake_transport):
        assert push.flush() is False
        assert fake_transport.requests == []

    def test_results_per_notification(self, push, fake_transport, subscriber):
        push.send_notification(Notification(ENDPOINT))
        push.send_notification(Notification(ENDPOINT + "2", b"hi", subscriber.public_key, subscriber.auth_secret))

        report = push.flush()

        assert report.total == 2
        assert report.success is True
        assert [r.status_code for r in report] == [201, 201]
        assert fake_transport.requests[1][1]["Content-Encoding"] == "aesgcm"

    def test_transport_failure_isolated(self, transport_factory):
        transport = transport_factory([201, TransportError("connection reset"), 202])
        push = WebPush(transport=transport)
        for i in range(3):
            push.send_notification(Notification(f"{ENDPOINT}/{i}"))

        report = push.flush()

        assert len(report) == 3
        assert report[0].status_code == 201 and report[0].success
        assert report[1].status_code is None
        assert report[1].success is False
        assert "connection reset" in report[1].error
        assert report[2].status_code == 202 and report[2].success
        assert report.failed == 1
        assert push.pending_count == 0
        assert len(transport.requests) == 3

    def test_queue_cleared_after_total_failure(self, transport_factory):
        transport = transport_factory([TransportError("down"), TransportError("down")])
        push = WebPush(transport=transport)
        push.send_notification(Notification(ENDPOINT))
        push.send_notification(Notification(ENDPOINT))

        report = push.flush()

        assert report.successful == 0
        assert push.flush() is False

    def test_error_status_collected(self, transport_factory):
        push = WebPush(transport=transport_factory([410]))
        push.send_notification(Notification(ENDPOINT))

        result = push.flush()[0]

        assert result.status_code == 410
        assert result.success is False
        assert result.should_unsubscribe is True

    def test_ttl_applied_to_every_request(self, push, fake_transport):
        push.ttl = 120
        push.send_notification(Notification(ENDPOINT))
        push.send_notification(Notification(ENDPOINT, b"plain"))
        push.flush()

        assert [headers["TTL"] for _, headers, _ in fake_transport.requests] == ["120", "120"]

    def test_padding_setting_read_at_flush(self, push, fake_transport, subscriber):
        push.send_notification(Notification(ENDPOINT, b"hi", subscriber.public_key, subscriber.auth_secret))
        push.automatic_padding = False
        push.flush()

        _, headers, body = fake_transport.requests[0]
        assert len(body) == 2 + 2 + 16
        assert headers["Content-Length"] == str(len(body))

    def test_plain_payload_without_keys(self, push, fake_transport):
        push.send_notification(Notification(ENDPOINT, b"literal payload"), flush=True)

        _, headers, body = fake_transport.requests[0]
        assert body == b"literal payload"
        assert headers["Content-Length"] == str(len(b"literal payload"))

    def test_build_failure_isolated(self, push, fake_transport, subscriber, monkeypatch):
        calls = {"count": 0}
        real_encrypt = request_builder.encrypt

        def flaky_encrypt(*args, **kwargs):
            calls["count"] += 1
            if calls["count"] == 1:
                raise EncryptionError("boom")
            return real_encrypt(*args, **kwargs)

        monkeypatch.setattr("pushdispatch.push.request_builder.encrypt", flaky_encrypt)

        for i in range(2):
            push.send_notification(Notification(f"{ENDPOINT}/{i}", b"hi", subscriber.public_key, subscriber.auth_secret))
        report = push.flush()

        assert report[0].error == "boom"
        assert report[0].status_code is None
        assert report[1].status_code == 201
        assert len(fake_transport.requests) == 1
        assert push.pending_count == 0


# =============================================================================
# Legacy services
# =============================================================================


class TestLegacyAuthorization:
    def test_missing_key_fails_before_sending(self, push, fake_transport):
        push.send_notification(Notification(ENDPOINT))
        push.send_notification(Notification(GCM_ENDPOINT))

        with pytest.raises(MissingAuthorizationKey) as exc_info:
            push.flush()

        assert exc_info.value.service_type == "GCM"
        assert fake_transport.requests == []
        assert push.pending_count == 2

    def test_configuring_key_lets_batch_proceed(self, push, fake_transport):
        push.send_notification(Notification(GCM_ENDPOINT))
        with pytest.raises(MissingAuthorizationKey):
            push.flush()

        push.set_api_key("GCM", "my-gcm-key")
        report = push.flush()

        assert report.total == 1
        url, headers, _ = fake_transport.requests[0]
        assert headers["Authorization"] == "key=my-gcm-key"
        assert url == "https://gcm-http.googleapis.com/gcm/XYZ"
        assert report[0].endpoint == url
        assert report[0].service_type == "GCM"

    def test_results_grouped_by_service_type(self, fake_transport):
        push = WebPush(api_keys={"GCM": "k"}, transport=fake_transport)
        push.send_notification(Notification(ENDPOINT + "/1"))
        push.send_notification(Notification(GCM_ENDPOINT))
        push.send_notification(Notification(ENDPOINT + "/2"))

        report = push.flush()

        assert [r.service_type for r in report] == [STANDARD_SERVICE, STANDARD_SERVICE, "GCM"]
        assert [r.endpoint for r in report][:2] == [ENDPOINT + "/1", ENDPOINT + "/2"]

    def test_standard_requests_have_no_authorization(self, fake_transport):
        push = WebPush(api_keys={"GCM": "k"}, transport=fake_transport)
        push.send_notification(Notification(ENDPOINT), flush=True)
        assert "Authorization" not in fake_transport.requests[0][1]


# =============================================================================
# Multiplexed transports
# =============================================================================


class TestMultiplexedDispatch:
    def test_all_submitted_before_flush_pending(self, multiplexed_transport_factory):
        transport = multiplexed_transport_factory([201, TransportError("timeout"), 201])
        push = WebPush(transport=transport)
        for i in range(3):
            push.send_notification(Notification(f"{ENDPOINT}/{i}"))

        report = push.flush()

        assert transport.flush_calls == 1
        assert len(transport.requests) == 3
        assert [r.status_code for r in report] == [201, None, 201]
        assert report[1].error == "timeout"
        assert push.pending_count == 0

    def test_outcome_count_mismatch_is_an_error(self, fake_multiplexed_transport, monkeypatch):
        monkeypatch.setattr(fake_multiplexed_transport, "flush_pending", lambda: [])
        push = WebPush(transport=fake_multiplexed_transport)
        push.send_notification(Notification(ENDPOINT))

        with pytest.raises(RuntimeError):
            push.flush()
        assert push.pending_count == 0

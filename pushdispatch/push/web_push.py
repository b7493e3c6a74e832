"""
Tool: Web Push Dispatcher
Purpose: Queue notifications per service type and flush them as encrypted Web Push requests

Usage:
    from pushdispatch.push.web_push import WebPush
    from pushdispatch.models import Notification

    push = WebPush(api_keys={"GCM": "server-key"})
    push.send_notification(Notification(endpoint=url, payload=b"hello",
                                        user_public_key=p256dh, user_auth_secret=auth))
    report = push.flush()   # FlushReport, or False if nothing was queued

    # Generate a subscriber keypair for manual testing
    python -m pushdispatch.push.web_push generate-keys

    # Send one notification
    python -m pushdispatch.push.web_push send --endpoint URL --payload "Hello" --p256dh B64 --auth B64

Flush lifecycle:
    Idle -> Validating -> Sending -> Collecting -> Idle
    - Validating: every queued service type that needs an API key must have one,
      otherwise MissingAuthorizationKey is raised and nothing is sent
    - Sending: the queue is drained, one request per notification
    - Collecting: transport failures become failed DeliveryResults
"""

import logging
from collections.abc import Mapping

from pushdispatch.config import (
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TTL,
    PushConfig,
    ServiceConfig,
    default_services,
)
from pushdispatch.exceptions import (
    InvalidNotificationError,
    MissingAuthorizationKey,
    PayloadTooLarge,
    PushError,
    TransportError,
)
from pushdispatch.models import DeliveryResult, FlushReport, Notification, PushRequest, PushResponse
from pushdispatch.push.classifier import EndpointClassifier
from pushdispatch.push.encryption import MAX_PAYLOAD_LENGTH, load_public_key, validate_auth_secret
from pushdispatch.push.request_builder import build_request
from pushdispatch.push.transport import (
    HttpxTransport,
    MultiplexedHttpxTransport,
    MultiplexedPushTransport,
    PushTransport,
)
from pushdispatch.queue.notification_queue import NotificationQueue

logger = logging.getLogger(__name__)


class WebPush:
    """
    Batching Web Push sender.

    Not safe for concurrent use: callers sharing an instance across
    threads must serialize send_notification() and flush().
    """

    def __init__(
        self,
        api_keys: Mapping[str, str] | None = None,
        ttl: int = DEFAULT_TTL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: PushTransport | None = None,
        automatic_padding: bool = True,
        services: Mapping[str, ServiceConfig] | None = None,
    ):
        self._api_keys: dict[str, str] = dict(api_keys or {})
        self.ttl = ttl
        self.automatic_padding = automatic_padding
        self._timeout = timeout
        self._transport = transport if transport is not None else HttpxTransport(timeout=timeout)
        self._queue = NotificationQueue()
        self._services: dict[str, ServiceConfig] = {}
        self._classifier = EndpointClassifier()
        self.configure_services(default_services() if services is None else services)

    @classmethod
    def from_config(cls, config: PushConfig, transport: PushTransport | None = None) -> "WebPush":
        """Build a WebPush from loaded configuration."""
        delivery = config.delivery
        if transport is None and delivery.multiplexed:
            transport = MultiplexedHttpxTransport(
                timeout=delivery.request_timeout,
                max_connections=delivery.max_connections,
            )

        return cls(
            api_keys=config.api_keys,
            ttl=delivery.ttl,
            timeout=delivery.request_timeout,
            transport=transport,
            automatic_padding=delivery.automatic_padding,
            services=config.services,
        )

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def ttl(self) -> int:
        return self._ttl

    @ttl.setter
    def ttl(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"TTL must be a non-negative integer number of seconds, got {value!r}")
        self._ttl = value

    @property
    def automatic_padding(self) -> bool:
        return self._automatic_padding

    @automatic_padding.setter
    def automatic_padding(self, value: bool) -> None:
        self._automatic_padding = bool(value)

    @property
    def timeout(self) -> float:
        """Request timeout given at construction; only the default HttpxTransport uses it."""
        return self._timeout

    @property
    def transport(self) -> PushTransport:
        return self._transport

    @transport.setter
    def transport(self, value: PushTransport) -> None:
        self._transport = value

    @property
    def api_keys(self) -> dict[str, str]:
        return dict(self._api_keys)

    @api_keys.setter
    def api_keys(self, value: Mapping[str, str]) -> None:
        self._api_keys = dict(value)

    def set_api_key(self, service_type: str, api_key: str) -> None:
        self._api_keys[service_type] = api_key

    @property
    def services(self) -> dict[str, ServiceConfig]:
        return dict(self._services)

    def configure_services(self, services: Mapping[str, ServiceConfig]) -> None:
        """Replace the legacy service table and reload endpoint classification."""
        parsed = {
            tag: service if isinstance(service, ServiceConfig) else ServiceConfig.model_validate(service)
            for tag, service in services.items()
        }
        self._classifier.reload({tag: service.prefix for tag, service in parsed.items()})
        self._services = parsed

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def classify(self, endpoint: str) -> str:
        return self._classifier.classify(endpoint)

    # -------------------------------------------------------------------------
    # Enqueue
    # -------------------------------------------------------------------------

    def send_notification(self, notification: Notification, *, flush: bool = False) -> FlushReport | bool | None:
        """
        Queue a notification, optionally flushing immediately.

        Args:
            notification: The notification to send
            flush: Flush the queue right away (usually for a single notification)

        Returns:
            The flush() result when flush=True, else None

        Raises:
            InvalidNotificationError: argument is not a Notification
            PayloadTooLarge: payload exceeds MAX_PAYLOAD_LENGTH
            InvalidKeyMaterial: subscriber key or auth secret is malformed
        """
        if not isinstance(notification, Notification):
            raise InvalidNotificationError(
                "The API has changed: send_notification() takes a Notification "
                "(endpoint, payload, user_public_key, user_auth_secret)."
            )

        if notification.payload is not None and len(notification.payload) > MAX_PAYLOAD_LENGTH:
            raise PayloadTooLarge(len(notification.payload), MAX_PAYLOAD_LENGTH)

        if notification.user_public_key is not None:
            load_public_key(notification.user_public_key)
        if notification.user_auth_secret is not None:
            validate_auth_secret(notification.user_auth_secret)

        service_type = self._classifier.classify(notification.endpoint)
        self._queue.append(service_type, notification)

        if flush:
            return self.flush()
        return None

    # -------------------------------------------------------------------------
    # Flush
    # -------------------------------------------------------------------------

    def flush(self) -> FlushReport | bool:
        """
        Send every queued notification.

        Returns:
            False if the queue was empty, else a FlushReport with one
            DeliveryResult per queued notification

        Raises:
            MissingAuthorizationKey: a queued service type has no API key;
                nothing is sent and the queue is kept
        """
        if not self._queue:
            return False

        logger.debug("Flush state: validating")
        self._validate(self._queue.service_types())

        logger.debug("Flush state: sending")
        groups = self._queue.drain()

        # One slot per notification; requests that failed to build hold a result already
        slots: list[tuple[str, str, PushRequest | None, DeliveryResult | None]] = []
        for service_type, notifications in groups:
            service = self._services.get(service_type)
            api_key = self._api_keys.get(service_type)
            for notification in notifications:
                try:
                    request = build_request(
                        notification,
                        service_type,
                        ttl=self._ttl,
                        automatic_padding=self._automatic_padding,
                        service=service,
                        api_key=api_key,
                    )
                except PushError as e:
                    logger.error(f"Could not build push request for {service_type} endpoint: {e}")
                    failed = DeliveryResult.from_error(notification.endpoint, service_type, e)
                    slots.append((service_type, notification.endpoint, None, failed))
                    continue
                slots.append((service_type, request.url, request, None))

        requests = [request for _, _, request, _ in slots if request is not None]
        outcomes = iter(self._send(requests))

        logger.debug("Flush state: collecting")
        report = FlushReport()
        for service_type, url, request, result in slots:
            if request is not None:
                outcome = next(outcomes)
                if isinstance(outcome, TransportError):
                    logger.warning(
                        f"Push delivery to {service_type} endpoint failed: {outcome}",
                        extra={"service_type": service_type},
                    )
                    result = DeliveryResult.from_error(url, service_type, outcome)
                else:
                    result = DeliveryResult.from_response(url, service_type, outcome)
            report.results.append(result)

        logger.info(
            f"Flushed {report.total} notifications: {report.successful} succeeded, {report.failed} failed",
            extra={"total": report.total, "successful": report.successful, "failed": report.failed},
        )
        return report

    def _validate(self, service_types: list[str]) -> None:
        for service_type in service_types:
            service = self._services.get(service_type)
            if service is not None and service.requires_api_key and not self._api_keys.get(service_type):
                raise MissingAuthorizationKey(service_type)

    def _send(self, requests: list[PushRequest]) -> list[PushResponse | TransportError]:
        if not requests:
            return []

        transport = self._transport
        if isinstance(transport, MultiplexedPushTransport):
            for request in requests:
                transport.submit(request.url, request.headers, request.body)
            outcomes = transport.flush_pending()
            if len(outcomes) != len(requests):
                raise RuntimeError(
                    f"Transport returned {len(outcomes)} outcomes for {len(requests)} requests"
                )
            return outcomes

        outcomes: list[PushResponse | TransportError] = []
        for request in requests:
            try:
                outcomes.append(transport.post(request.url, request.headers, request.body))
            except TransportError as e:
                outcomes.append(e)
        return outcomes


# CLI interface
if __name__ == "__main__":
    import argparse
    import base64
    import json
    import os

    from cryptography.hazmat.primitives.asymmetric import ec

    from pushdispatch.config import load_push_config
    from pushdispatch.logging_config import setup_logging
    from pushdispatch.push.encryption import AUTH_SECRET_LENGTH, encode_public_key, urlsafe_b64

    def _b64decode(value: str) -> bytes:
        return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))

    parser = argparse.ArgumentParser(description="Web Push dispatch tools")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Generate subscriber keys
    subparsers.add_parser("generate-keys", help="Generate a subscriber keypair and auth secret")

    # Send notification
    send_parser = subparsers.add_parser("send", help="Send one notification")
    send_parser.add_argument("--endpoint", "-e", required=True, help="Push endpoint URL")
    send_parser.add_argument("--payload", "-p", help="Payload text")
    send_parser.add_argument("--p256dh", help="Subscriber public key (URL-safe base64)")
    send_parser.add_argument("--auth", help="Subscriber auth secret (URL-safe base64)")
    send_parser.add_argument("--ttl", type=int, help="Time to live in seconds")
    send_parser.add_argument("--no-padding", action="store_true", help="Disable automatic padding")
    send_parser.add_argument("--api-key", action="append", default=[], metavar="TAG=KEY",
                             help="API key for a legacy service (repeatable)")

    args = parser.parse_args()
    setup_logging()

    if args.command == "generate-keys":
        private_key = ec.generate_private_key(ec.SECP256R1())
        private_bytes = private_key.private_numbers().private_value.to_bytes(32, byteorder="big")
        print("Subscriber Keys Generated")
        print("-" * 40)
        print(f"p256dh:      {urlsafe_b64(encode_public_key(private_key.public_key()))}")
        print(f"auth:        {urlsafe_b64(os.urandom(AUTH_SECRET_LENGTH))}")
        print(f"private key: {urlsafe_b64(private_bytes)}")

    elif args.command == "send":
        config = load_push_config()
        for item in args.api_key:
            tag, _, key = item.partition("=")
            config.api_keys[tag] = key

        push = WebPush.from_config(config)
        if args.ttl is not None:
            push.ttl = args.ttl
        if args.no_padding:
            push.automatic_padding = False

        try:
            result = push.send_notification(
                Notification(
                    endpoint=args.endpoint,
                    payload=args.payload,
                    user_public_key=_b64decode(args.p256dh) if args.p256dh else None,
                    user_auth_secret=_b64decode(args.auth) if args.auth else None,
                ),
                flush=True,
            )
        except PushError as e:
            print(f"Error: {e}")
            raise SystemExit(1)
        finally:
            push.transport.close()

        print(json.dumps(result.to_dict(), indent=2))
        if not result.success:
            raise SystemExit(1)

    else:
        parser.print_help()

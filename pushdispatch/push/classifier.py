"""
Tool: Endpoint Classifier
Purpose: Map a push endpoint URL to its service type using a prefix table

Usage:
    from pushdispatch.push.classifier import EndpointClassifier

    classifier = EndpointClassifier({"GCM": "https://android.googleapis.com/gcm/send"})
    classifier.classify("https://android.googleapis.com/gcm/send/abc")  # "GCM"
    classifier.classify("https://updates.push.services.mozilla.com/wpush/v2/x")  # "standard"

The table is configuration (args/push.yaml "services"), not code, so
legacy services can be added or removed without a release.
"""

import logging
from collections.abc import Mapping

from pushdispatch.models import STANDARD_SERVICE

logger = logging.getLogger(__name__)


class EndpointClassifier:
    """Ordered prefix table; the first matching prefix wins."""

    def __init__(self, prefixes: Mapping[str, str] | None = None):
        self._prefixes: dict[str, str] = {}
        self.reload(prefixes or {})

    @classmethod
    def from_services(cls, services: Mapping) -> "EndpointClassifier":
        """Build from a services mapping (tag -> ServiceConfig)."""
        return cls({tag: service.prefix for tag, service in services.items()})

    @property
    def prefixes(self) -> dict[str, str]:
        return dict(self._prefixes)

    def reload(self, prefixes: Mapping[str, str]) -> None:
        """Replace the prefix table."""
        table = {}
        for service_type, prefix in prefixes.items():
            if service_type == STANDARD_SERVICE:
                raise ValueError(f"'{STANDARD_SERVICE}' is reserved and cannot have a prefix")
            if not prefix:
                raise ValueError(f"Empty prefix for service type '{service_type}'")
            table[service_type] = prefix

        self._prefixes = table
        logger.debug(f"Loaded {len(table)} legacy endpoint prefixes")

    def classify(self, endpoint: str) -> str:
        for service_type, prefix in self._prefixes.items():
            if endpoint.startswith(prefix):
                return service_type
        return STANDARD_SERVICE

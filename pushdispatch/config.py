"""
Tool: Push Dispatch Configuration
Purpose: Typed configuration for delivery defaults, legacy services and API keys

Usage:
    from pushdispatch.config import load_push_config

    config = load_push_config()          # args/push.yaml + environment
    push = WebPush.from_config(config)

Environment overrides (take precedence over args/push.yaml):
    PUSHDISPATCH_TTL                 TTL in seconds
    PUSHDISPATCH_AUTOMATIC_PADDING   true/false
    PUSHDISPATCH_REQUEST_TIMEOUT     transport timeout in seconds
    PUSHDISPATCH_API_KEY_<TAG>       API key for a legacy service (e.g. PUSHDISPATCH_API_KEY_GCM)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from pushdispatch import CONFIG_PATH

logger = logging.getLogger(__name__)

ENV_PREFIX = "PUSHDISPATCH_"
API_KEY_ENV_PREFIX = f"{ENV_PREFIX}API_KEY_"

DEFAULT_TTL = 2419200  # 4 weeks
DEFAULT_REQUEST_TIMEOUT = 30

GCM_URL = "https://android.googleapis.com/gcm/send"
GCM_DELIVERY_URL = "https://gcm-http.googleapis.com/gcm"


class ServiceConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    prefix: str = Field(min_length=1)
    delivery_url: Optional[str] = None
    requires_api_key: bool = Field(default=True)


def default_services() -> dict[str, ServiceConfig]:
    return {
        "GCM": ServiceConfig(prefix=GCM_URL, delivery_url=GCM_DELIVERY_URL, requires_api_key=True),
    }


class DeliveryConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    ttl: int = Field(default=DEFAULT_TTL, ge=0)
    automatic_padding: bool = Field(default=True)
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    multiplexed: bool = Field(default=False)
    max_connections: int = Field(default=100, ge=1)


class PushConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    services: dict[str, ServiceConfig] = Field(default_factory=default_services)
    api_keys: dict[str, str] = Field(default_factory=dict)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _apply_env_overrides(raw: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    delivery = dict(raw.get("delivery") or {})
    if environ.get(f"{ENV_PREFIX}TTL"):
        delivery["ttl"] = environ[f"{ENV_PREFIX}TTL"]
    if environ.get(f"{ENV_PREFIX}AUTOMATIC_PADDING"):
        delivery["automatic_padding"] = _parse_bool(environ[f"{ENV_PREFIX}AUTOMATIC_PADDING"])
    if environ.get(f"{ENV_PREFIX}REQUEST_TIMEOUT"):
        delivery["request_timeout"] = environ[f"{ENV_PREFIX}REQUEST_TIMEOUT"]

    api_keys = dict(raw.get("api_keys") or {})
    for name, value in environ.items():
        if name.startswith(API_KEY_ENV_PREFIX) and value:
            api_keys[name[len(API_KEY_ENV_PREFIX):]] = value

    merged = dict(raw)
    merged["delivery"] = delivery
    merged["api_keys"] = api_keys
    return merged


def load_push_config(path: Path | None = None, environ: dict[str, str] | None = None) -> PushConfig:
    """
    Load push configuration from YAML with environment overrides.

    Falls back to defaults (with a warning) if the file is unreadable or invalid.
    """
    yaml_path = Path(path) if path is not None else CONFIG_PATH
    if environ is None:
        environ = dict(os.environ)

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        return PushConfig.model_validate(_apply_env_overrides(raw, environ))
    except Exception as e:
        logger.warning(f"Config validation failed for {yaml_path.name}: {e}, using defaults")
        return PushConfig()

"""
Client configuration: node endpoints, chain name, retry/timeouts and deploy
defaults.

- Loads sane defaults and supports overrides via environment variables (CSPR_*).
- Provides helpers for building HTTP headers and validating endpoints.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .version import user_agent

_DEFAULT_NODE = "http://127.0.0.1:7777/rpc"
_DEFAULT_EVENTS = "http://127.0.0.1:9999/events/main"
_DEFAULT_CHAIN = "casper-net-1"

# 30 minutes, the TTL every contract call uses unless told otherwise
DEFAULT_TTL_MS = 1_800_000
DEFAULT_GAS_PRICE = 1
DEFAULT_RESOLUTION_TIMEOUT = 120.0


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None else default


def _ensure_scheme(url: Optional[str], allowed: tuple[str, ...]) -> Optional[str]:
    if not url:
        return url
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ValueError(f"URL must start with {allowed}, got: {url!r}")
    return url


@dataclass(slots=True)
class ClientConfig:
    # Endpoints
    node_url: str = _DEFAULT_NODE
    events_url: Optional[str] = None
    chain_name: str = _DEFAULT_CHAIN
    # HTTP behavior
    request_timeout: float = 10.0
    max_retries: int = 3
    backoff_factor: float = 0.25
    # Deploy lifecycle
    poll_interval: float = 2.0
    resolution_timeout: float = DEFAULT_RESOLUTION_TIMEOUT
    deploy_ttl_ms: int = DEFAULT_TTL_MS
    gas_price: int = DEFAULT_GAS_PRICE
    # Headers / identity
    user_agent: str = field(default_factory=user_agent)

    @classmethod
    def from_env(cls, prefix: str = "CSPR_") -> "ClientConfig":
        """
        Create config from environment variables:

        CSPR_NODE_URL            (http/https JSON-RPC endpoint)
        CSPR_EVENTS_URL          (http/https SSE endpoint) optional
        CSPR_CHAIN_NAME          (str)
        CSPR_TIMEOUT             (float seconds, HTTP)
        CSPR_MAX_RETRIES         (int)
        CSPR_BACKOFF             (float)
        CSPR_POLL_INTERVAL       (float seconds)
        CSPR_RESOLUTION_TIMEOUT  (float seconds)
        CSPR_DEPLOY_TTL_MS       (int milliseconds)
        CSPR_GAS_PRICE           (int)
        CSPR_USER_AGENT          (str)
        """
        node = _env(f"{prefix}NODE_URL", _DEFAULT_NODE)
        events = _env(f"{prefix}EVENTS_URL", None)

        _ensure_scheme(node, ("http", "https"))
        _ensure_scheme(events, ("http", "https"))

        return cls(
            node_url=node or _DEFAULT_NODE,
            events_url=events,
            chain_name=_env(f"{prefix}CHAIN_NAME", _DEFAULT_CHAIN) or _DEFAULT_CHAIN,
            request_timeout=float(_env(f"{prefix}TIMEOUT", "10.0")),
            max_retries=int(_env(f"{prefix}MAX_RETRIES", "3")),
            backoff_factor=float(_env(f"{prefix}BACKOFF", "0.25")),
            poll_interval=float(_env(f"{prefix}POLL_INTERVAL", "2.0")),
            resolution_timeout=float(_env(f"{prefix}RESOLUTION_TIMEOUT", str(DEFAULT_RESOLUTION_TIMEOUT))),
            deploy_ttl_ms=int(_env(f"{prefix}DEPLOY_TTL_MS", str(DEFAULT_TTL_MS))),
            gas_price=int(_env(f"{prefix}GAS_PRICE", str(DEFAULT_GAS_PRICE))),
            user_agent=_env(f"{prefix}USER_AGENT", None) or user_agent(),
        )

    @classmethod
    def with_overrides(
        cls, base: Optional["ClientConfig"] = None, **overrides: Any
    ) -> "ClientConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys and None values are ignored.
        """
        base = base or cls.from_env()
        data = base.to_dict()
        data.update({k: v for k, v in overrides.items() if k in data and v is not None})
        if "node_url" in overrides:
            _ensure_scheme(data["node_url"], ("http", "https"))
        if "events_url" in overrides:
            _ensure_scheme(data["events_url"], ("http", "https"))
        return cls(**data)

    def http_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    def resolved_events_url(self) -> str:
        """Events endpoint; defaults to the node host on port 9999."""
        if self.events_url:
            return self.events_url
        scheme, _, rest = self.node_url.partition("://")
        host = rest.split("/", 1)[0].rsplit(":", 1)[0]
        return f"{scheme}://{host}:9999/events/main"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_url": self.node_url,
            "events_url": self.events_url,
            "chain_name": self.chain_name,
            "request_timeout": float(self.request_timeout),
            "max_retries": int(self.max_retries),
            "backoff_factor": float(self.backoff_factor),
            "poll_interval": float(self.poll_interval),
            "resolution_timeout": float(self.resolution_timeout),
            "deploy_ttl_ms": int(self.deploy_ttl_ms),
            "gas_price": int(self.gas_price),
            "user_agent": self.user_agent,
        }


__all__ = [
    "ClientConfig",
    "DEFAULT_TTL_MS",
    "DEFAULT_GAS_PRICE",
    "DEFAULT_RESOLUTION_TIMEOUT",
]

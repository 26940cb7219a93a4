"""Environment helpers shared by the gateway.

Deployments are described by the ``ENVIRONMENT`` setting. Anything that
looks like a production tier switches on the stricter cookie and key
handling in the service configuration.
"""
from __future__ import annotations

PRODUCTION_ENVIRONMENTS = frozenset({"prod", "production", "staging"})


def is_production_environment(env: str) -> bool:
    """Return ``True`` when ``env`` names a production-like tier."""

    return env.strip().lower() in PRODUCTION_ENVIRONMENTS


def parse_env_list(value: str | None, default: list[str]) -> list[str]:
    """Split a comma separated variable, falling back to ``default`` when empty."""

    if value is None:
        return default
    parsed = [item.strip() for item in value.split(",") if item.strip()]
    return parsed or default


__all__ = [
    "PRODUCTION_ENVIRONMENTS",
    "is_production_environment",
    "parse_env_list",
]

"""Run mode resolution for the ``-mode`` flag."""

from enum import Enum
from typing import Optional


class RunMode(str, Enum):
    """Serving topology selected for one process invocation."""
    TEST = "serve-test"
    HTTP = "serve-http"
    TUNNEL = "serve-cfd"
    PRODUCTION = "serve-prod"
    VIEW = "view"

    @property
    def requires_tls(self) -> bool:
        return self in (RunMode.TEST, RunMode.PRODUCTION)

    @property
    def serves_network(self) -> bool:
        return self is not RunMode.VIEW


MODE_ALIASES: dict[str, RunMode] = {
    "serve-test": RunMode.TEST,
    "test": RunMode.TEST,
    "serve": RunMode.TEST,
    "serve-http": RunMode.HTTP,
    "http": RunMode.HTTP,
    "serve-cfd": RunMode.TUNNEL,
    "cfd": RunMode.TUNNEL,
    "cloudflared": RunMode.TUNNEL,
    "serve-prod": RunMode.PRODUCTION,
    "prod": RunMode.PRODUCTION,
    "view": RunMode.VIEW,
    "tui": RunMode.VIEW,
}


def resolve_mode(value: Optional[str]) -> Optional[RunMode]:
    """Map free-form mode text to a RunMode.

    Returns None for anything outside the alias table; callers must treat
    that as fatal rather than pick a default.
    """
    if value is None:
        return None
    return MODE_ALIASES.get(value.strip().lower())


def valid_mode_names() -> str:
    """Human-readable list of accepted values for error messages."""
    canonical = ", ".join(mode.value for mode in RunMode)
    return f"{canonical} (aliases: test/http/cfd/prod/tui)"

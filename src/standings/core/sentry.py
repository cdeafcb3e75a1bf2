"""Sentry error reporting for standings recalculation jobs.

Reporting is off unless a DSN is set in ``SENTRY_DSN`` or
``STANDINGS_SENTRY_DSN``. ``SENTRY_ENVIRONMENT`` tags the environment and
``SENTRY_TRACES_SAMPLE_RATE`` enables tracing.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence
from urllib.parse import urlparse

_LOG = logging.getLogger("standings.core.sentry")

DEFAULT_DSN_ENVS = ("SENTRY_DSN", "STANDINGS_SENTRY_DSN")


def _sample_rate(name: str, default: float = 0.0) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        _LOG.debug("Ignoring %s=%r; using %s", name, raw, default)
        return default
    return min(max(value, 0.0), 1.0)


@dataclass(frozen=True)
class SentrySettings:
    dsn: Optional[str]
    environment: str = "development"
    traces_sample_rate: float = 0.0
    debug: bool = False

    @classmethod
    def from_env(cls, dsn_envs: Sequence[str] = DEFAULT_DSN_ENVS) -> SentrySettings:
        dsn = next((os.environ[n] for n in dsn_envs if os.getenv(n)), None)
        if dsn:
            # Secrets are sometimes stored with surrounding quotes
            dsn = dsn.strip().strip("\"'")
        return cls(
            dsn=dsn,
            environment=os.getenv("SENTRY_ENVIRONMENT")
            or os.getenv("SENTRY_ENV")
            or "development",
            traces_sample_rate=_sample_rate("SENTRY_TRACES_SAMPLE_RATE"),
            debug=os.getenv("SENTRY_DEBUG", "").strip().lower()
            in {"1", "true", "yes", "on"},
        )

    @property
    def enabled(self) -> bool:
        if not self.dsn:
            return False
        parsed = urlparse(self.dsn)
        return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def init_sentry(
    *,
    context: str,
    release: Optional[str] = None,
    tags: Optional[Mapping[str, object]] = None,
    settings: Optional[SentrySettings] = None,
) -> bool:
    """Initialize Sentry for one job run.

    ERROR logs from the ``standings`` loggers become Sentry events and INFO
    logs are kept as breadcrumbs. ``context`` is set as the ``service`` tag;
    ``tags`` (for example the tournaments being recalculated) are added
    alongside it.

    Returns True if the SDK was initialized.
    """
    settings = settings or SentrySettings.from_env()
    if not settings.enabled:
        _LOG.info("Sentry disabled for %s: no usable DSN configured", context)
        return False

    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration
    except ImportError as e:  # pragma: no cover - depends on the environment
        _LOG.info("Sentry disabled: sentry_sdk import failed: %s", e)
        return False

    sentry_sdk.init(
        dsn=settings.dsn,
        environment=settings.environment,
        release=release,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
        ],
        traces_sample_rate=settings.traces_sample_rate,
        debug=settings.debug,
    )
    sentry_sdk.set_tag("service", context)
    for key, value in (tags or {}).items():
        sentry_sdk.set_tag(key, str(value))
    _LOG.info(
        "Sentry initialized: context=%s env=%s traces=%s",
        context,
        settings.environment,
        settings.traces_sample_rate,
    )
    return True


__all__ = ["DEFAULT_DSN_ENVS", "SentrySettings", "init_sentry"]

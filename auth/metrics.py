"""
auth/metrics.py -- Login metric collaborator.

SessionService only needs record_login(role). The Prometheus implementation
owns a private CollectorRegistry rather than the process-global default
registry, so several app instances (tests build many) never collide on
duplicate metric names.
"""

from __future__ import annotations

from typing import Protocol

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest


class LoginMetrics(Protocol):
    def record_login(self, role: str) -> None: ...


class PrometheusLoginMetrics:
    """Counts successful logins per role and renders the Prometheus text format."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self._logins = Counter(
            "pulseauth_logins",
            "Successful password logins.",
            labelnames=["role"],
            registry=self.registry,
        )

    def record_login(self, role: str) -> None:
        self._logins.labels(role=role).inc()

    def login_count(self, role: str) -> float:
        value = self.registry.get_sample_value("pulseauth_logins_total", {"role": role})
        return value or 0.0

    def render(self) -> bytes:
        return generate_latest(self.registry)

from __future__ import annotations

from dataclasses import dataclass, field

from prometheus_client import Counter, Gauge, Info


@dataclass(frozen=True)
class RedirectorMetrics:
    """Prometheus metrics describing lookups and the mapping store.

    HTTP-level request metrics live with the middleware in ``main``; these
    count what the resolver chain decided for each request.
    """

    redirects_total: Counter = field(
        default_factory=lambda: Counter(
            "redirector_redirects_total",
            "Total redirects issued, by the resolver that matched",
            ["resolver"],
        )
    )
    fallthrough_total: Counter = field(
        default_factory=lambda: Counter(
            "redirector_fallthrough_total",
            "Total requests no resolver matched, answered by the default handler",
        )
    )
    store_errors_total: Counter = field(
        default_factory=lambda: Counter(
            "redirector_store_errors_total",
            "Total mapping store failures",
            ["operation"],
        )
    )
    mappings_loaded: Gauge = field(
        default_factory=lambda: Gauge(
            "redirector_mappings_loaded",
            "Number of path mappings loaded at startup, by config source",
            ["source"],
        )
    )
    build_info: Info = field(
        default_factory=lambda: Info(
            "redirector_build",
            "Build information for the redirector",
        )
    )


METRICS = RedirectorMetrics()

"""Prometheus metrics."""

from prometheus_client import Counter

REQUEST_COUNT = Counter(
    "edge_proxy_requests_total",
    "Total number of proxy requests",
    ["kind", "status"],
)
CACHE_LOOKUPS = Counter(
    "edge_proxy_cache_lookups_total",
    "Cache lookups by result",
    ["result"],
)
UPSTREAM_CALLS = Counter(
    "edge_proxy_upstream_calls_total",
    "Upstream calls by kind and outcome",
    ["kind", "outcome"],
)

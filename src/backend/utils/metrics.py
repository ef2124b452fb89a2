"""
Prometheus metrics for the SecondMe chat backend.

Defines the custom metrics; they are exposed on ``GET /api/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Use standard Prometheus naming conventions: namespace_subsystem_name_unit
NAMESPACE = "secondme_chat"

# ============================================================================
# Request Metrics
# ============================================================================

request_duration_seconds = Histogram(
    f"{NAMESPACE}_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path", "status"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)


# ============================================================================
# Chat Relay Metrics
# ============================================================================

chat_turns_total = Counter(
    f"{NAMESPACE}_chat_turns_total",
    "Chat turns by how the relay ended",
    ["outcome"],  # "completed", "partial", "empty", "rejected"
)

chat_stream_bytes_total = Counter(
    f"{NAMESPACE}_chat_stream_bytes_total",
    "Bytes relayed from the upstream chat stream",
)


# ============================================================================
# Upstream (SecondMe) Metrics
# ============================================================================

upstream_request_duration_seconds = Histogram(
    f"{NAMESPACE}_upstream_request_duration_seconds",
    "SecondMe call duration in seconds (time to response headers for streams)",
    ["operation", "status"],  # status: "success", "error"
    buckets=(0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


# ============================================================================
# Database Metrics
# ============================================================================

db_pool_size = Gauge(
    f"{NAMESPACE}_db_pool_size",
    "Current size of the database connection pool",
)

db_pool_connections = Gauge(
    f"{NAMESPACE}_db_pool_connections",
    "Number of database connections by state",
    ["state"],  # "free" or "used"
)

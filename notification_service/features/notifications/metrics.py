"""Prometheus metrics for notification dispatch.

Usage:
    from notification_service.features.notifications.metrics import (
        notification_created_total,
        notification_delivery_total,
    )

    notification_created_total.labels(kind="warning", source="template").inc()
    notification_delivery_total.labels(channel="email", status="sent").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Notification Lifecycle Metrics
# =============================================================================

notification_created_total = Counter(
    "notification_created_total",
    "Total number of notifications created",
    labelnames=["kind", "source"],
)
"""
Counter for notification creation.

Labels:
    kind: Notification kind (info, success, warning, error)
    source: Send path (direct, role, template)
"""

notification_read_total = Counter(
    "notification_read_total",
    "Total number of notifications marked as read",
    labelnames=["kind"],
)

# =============================================================================
# Delivery Metrics
# =============================================================================

notification_delivery_total = Counter(
    "notification_delivery_total",
    "Total number of delivery log entries by channel and status",
    labelnames=["channel", "status"],
)
"""
Counter for delivery attempts and their outcome.

Labels:
    channel: Channel type (in_app, email, sms, push, chat)
    status: sent, suppressed, failed
"""

notification_suppressed_total = Counter(
    "notification_suppressed_total",
    "Total number of suppressed deliveries by reason",
    labelnames=["channel", "reason"],
)
"""
Counter for suppressed deliveries.

Labels:
    channel: Channel type
    reason: disabled-by-preference or quiet-hours
"""

notification_delivery_duration_seconds = Histogram(
    "notification_delivery_duration_seconds",
    "Channel adapter call duration in seconds",
    labelnames=["channel"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
"""
Histogram of adapter call durations.

Buckets:
    - 0.05s-0.25s: in-app and fast gateways
    - 0.5s-2.5s: typical SMTP/HTTP provider calls
    - 5s-30s: slow providers approaching the adapter timeout
"""

# =============================================================================
# Channel Registry Metrics
# =============================================================================

channel_activation_total = Counter(
    "notification_channel_activation_total",
    "Channel activation attempts by channel type and outcome",
    labelnames=["channel", "outcome"],
)
"""
Counter for channel activations.

Labels:
    channel: Channel type
    outcome: activated, deactivated, conflict
"""

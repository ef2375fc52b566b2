"""
Prometheus instrumentation for the bridge.

Counters mirror BridgeStatistics so a scrape shows the same numbers the
status endpoint reports, aggregated across bridge instances in the process.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

bridge_events_counter = Counter(
    "ordbridge_events_total",
    "Bridge state transitions by event type",
    ["event"],
)

bridge_rejections_counter = Counter(
    "ordbridge_rejected_calls_total",
    "Bridge calls rejected with a typed error",
    ["operation", "code"],
)

deposit_volume_counter = Counter(
    "ordbridge_confirmed_deposit_satoshis_total",
    "Satoshis in confirmed deposits",
)

header_height_gauge = Gauge(
    "ordbridge_highest_header_height",
    "Highest source-chain header height known to the bridge",
)


def record_event(event: str, amount: int = 1) -> None:
    if amount <= 0:
        return
    bridge_events_counter.labels(event=event).inc(amount)


def record_rejection(operation: str, code: str) -> None:
    bridge_rejections_counter.labels(operation=operation, code=code).inc()


def record_confirmed_volume(amount: int) -> None:
    if amount > 0:
        deposit_volume_counter.inc(amount)


def update_highest_height(height: int) -> None:
    header_height_gauge.set(height)

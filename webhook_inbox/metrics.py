"""
Prometheus metrics for the webhook inbox.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry

# Payload sizes from a few hundred bytes up to the 5 MiB ingestion bound
SIZE_BUCKETS = (256, 1024, 4096, 16384, 65536, 262144, 1048576, 5242880)


class Metrics:
    """
    Centralized metrics for the webhook inbox.

    Each instance owns its registry, so several apps can live in one process.
    """

    def __init__(self, service_name: str = "webhook-inbox", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Business Metrics
        self.events_ingested_total = Counter(
            "webhook_inbox_events_ingested_total",
            "Total webhook events captured",
            ["source"],
            registry=self.registry,
        )

        self.event_size_bytes = Histogram(
            "webhook_inbox_event_size_bytes",
            "Captured payload size in bytes",
            buckets=SIZE_BUCKETS,
            registry=self.registry,
        )

        self.events_purged_total = Counter(
            "webhook_inbox_events_purged_total",
            "Total events deleted by purge",
            registry=self.registry,
        )

        self.payloads_rejected_total = Counter(
            "webhook_inbox_payloads_rejected_total",
            "Inbound payloads rejected before storage",
            ["reason"],
            registry=self.registry,
        )

    def record_event_ingested(self, source: str, size_bytes: int):
        """Record a captured event."""
        self.events_ingested_total.labels(source=source or "none").inc()
        self.event_size_bytes.observe(size_bytes)

    def record_events_purged(self, count: int):
        if count:
            self.events_purged_total.inc(count)

    def record_payload_rejected(self, reason: str):
        self.payloads_rejected_total.labels(reason=reason).inc()

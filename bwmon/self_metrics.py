"""Self-monitoring metrics using prometheus_client."""
from typing import Optional
from prometheus_client import (
    Counter, Gauge, Histogram,
    CollectorRegistry, start_http_server
)
import logging

from bwmon.aggregator import Statistics

logger = logging.getLogger(__name__)


class SelfMetrics:
    """Counters and gauges describing the monitor's own cycles."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, prefix: str = "bwmon_"):
        # Use a custom registry to avoid exporting default Python/process metrics
        self.registry = registry or CollectorRegistry()

        self.cycles_total = Counter(
            f"{prefix}cycles_total",
            "Measurement cycles by outcome",
            ["outcome"],
            registry=self.registry
        )

        self.samples_total = Counter(
            f"{prefix}samples_total",
            "Throughput samples aggregated",
            registry=self.registry
        )

        self.cycle_duration_seconds = Histogram(
            f"{prefix}cycle_duration_seconds",
            "Duration of each measurement cycle in seconds",
            buckets=[1, 5, 10, 20, 30, 45, 60, 120, 300],
            registry=self.registry
        )

        self.last_throughput_kbps = Gauge(
            f"{prefix}last_throughput_kbps",
            "Statistics of the last delivered measurement in kbit/s",
            ["stat"],
            registry=self.registry
        )

    def record_cycle(self, outcome: str, duration: float):
        """Record a finished cycle; outcome is "success" or an error class name."""
        self.cycles_total.labels(outcome=outcome).inc()
        self.cycle_duration_seconds.observe(duration)

    def record_statistics(self, stats: Statistics):
        """Record the statistics of a delivered point."""
        self.samples_total.inc(stats.count)
        self.last_throughput_kbps.labels(stat="min").set(stats.min)
        self.last_throughput_kbps.labels(stat="max").set(stats.max)
        self.last_throughput_kbps.labels(stat="mean").set(stats.mean)
        self.last_throughput_kbps.labels(stat="stddev").set(stats.stddev)

    def serve(self, port: int, bind_address: str = "0.0.0.0"):
        """Expose the registry over HTTP."""
        try:
            start_http_server(port, addr=bind_address, registry=self.registry)
            logger.info(f"Self-metrics listening on {bind_address}:{port}/metrics")
        except Exception as e:
            logger.error(f"Failed to start self-metrics HTTP server: {e}")
            raise

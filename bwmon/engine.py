"""Measurement cycle scheduler."""
import threading
import time
import logging
from typing import Callable, Optional

from bwmon.aggregator import SampleChannel, aggregate
from bwmon.config import Config
from bwmon.delivery import DeliveryClient
from bwmon.errors import BwmonError
from bwmon.line_protocol import encode_line
from bwmon.point import Point, new_point
from bwmon.self_metrics import SelfMetrics
from bwmon.sources import FastSampleSource, SampleSource

logger = logging.getLogger(__name__)

SourceFactory = Callable[[Config], SampleSource]


def default_source_factory(config: Config) -> SampleSource:
    """A fresh fast.com source per cycle."""
    return FastSampleSource(config.source)


class CycleWorker(threading.Thread):
    """Drains one cycle's sample channel, then aggregates, encodes and delivers.

    The outcome is left on the thread: point on success, error otherwise.
    """

    def __init__(
        self,
        config: Config,
        channel: SampleChannel,
        client: DeliveryClient,
        self_metrics: Optional[SelfMetrics] = None
    ):
        super().__init__(name="bwmon-cycle-worker", daemon=True)
        self.config = config
        self.channel = channel
        self.client = client
        self.self_metrics = self_metrics
        self.point: Optional[Point] = None
        self.error: Optional[BaseException] = None

    def run(self):
        try:
            stats = aggregate(self.channel)

            point = new_point(self.config)
            point.set_statistics(stats)

            self.client.write(encode_line(point))

            if self.self_metrics:
                self.self_metrics.record_statistics(stats)
            self.point = point
        except Exception as e:
            self.error = e


class MonitorEngine:
    """Runs measure, aggregate, encode, deliver cycles forever."""

    def __init__(
        self,
        config: Config,
        source_factory: SourceFactory = default_source_factory,
        client: Optional[DeliveryClient] = None,
        self_metrics: Optional[SelfMetrics] = None
    ):
        self.config = config
        self.source_factory = source_factory
        self.client = client or DeliveryClient(
            config.db_url,
            timeout_s=config.http_timeout_s,
            debug=config.debug
        )
        self.self_metrics = self_metrics
        self.running = False
        self.cycle_count = 0
        self.failure_count = 0
        self._stop_event = threading.Event()

        logger.info("Monitor engine initialized")

    def run_cycle(self) -> Point:
        """Execute one cycle and return the delivered point.

        Raises the BwmonError that aborted the cycle. Nothing is delivered
        unless the whole measurement succeeded with at least one sample.
        """
        source = self.source_factory(self.config)
        try:
            return self._measure_and_deliver(source)
        finally:
            source.close()

    def _measure_and_deliver(self, source: SampleSource) -> Point:
        source.init()
        endpoints = source.list_endpoints()

        channel = SampleChannel()
        worker = CycleWorker(self.config, channel, self.client, self.self_metrics)
        worker.start()

        try:
            source.measure(endpoints, channel)
        except Exception as e:
            channel.close(e)
            worker.join()
            raise

        # No-op unless the source forgot to close it.
        channel.close()
        worker.join()

        if worker.error is not None:
            raise worker.error
        return worker.point

    def run(self):
        """Run cycles until stop() is called.

        A failed cycle is logged and retried immediately, without backoff.
        A successful one is followed by interval_s seconds of sleep.
        """
        if self._stop_event.is_set():
            logger.info("Monitor engine stopped before start")
            return
        self.running = True

        logger.info(f"Starting monitor engine, interval {self.config.interval_s}s")

        while self.running and not self._stop_event.is_set():
            cycle_start = time.time()
            outcome = "success"

            try:
                point = self.run_cycle()
            except BwmonError as e:
                outcome = type(e).__name__
                logger.error(str(e))
            except Exception as e:
                outcome = type(e).__name__
                logger.error(f"Unexpected error in cycle: {e}", exc_info=True)
            else:
                logger.info(
                    f"Delivered {point.measurement}: mean={point.fields['mean']} kbps "
                    f"(min={point.fields['min']}, max={point.fields['max']}, "
                    f"stddev={point.fields['stddev']})"
                )

            self.cycle_count += 1
            if self.self_metrics:
                self.self_metrics.record_cycle(outcome, time.time() - cycle_start)

            if outcome != "success":
                self.failure_count += 1
                continue

            self._stop_event.wait(self.config.interval_s)

        logger.info("Monitor engine stopped")

    def stop(self):
        """Stop after the current cycle; interrupts the sleep."""
        logger.info("Stopping monitor engine")
        self.running = False
        self._stop_event.set()


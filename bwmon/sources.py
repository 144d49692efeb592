"""Sample sources that produce throughput samples (kbit/s) onto a SampleChannel."""
from abc import ABC, abstractmethod
from typing import List, Optional
import logging
import re
import threading
import time

import requests

from bwmon.aggregator import SampleChannel
from bwmon.config import SourceConfig
from bwmon.errors import MeasurementError, SourceInitError

logger = logging.getLogger(__name__)


class SampleSource(ABC):
    """Base class for measurement providers.

    measure() must close the sink when it returns, passing the error to
    close() when the measurement failed. The engine calls close() on the source after every cycle.
    """

    @abstractmethod
    def init(self):
        """Prepare the source. Raises SourceInitError."""
        pass

    @abstractmethod
    def list_endpoints(self) -> List[str]:
        """Return the endpoints to measure against. Raises SourceInitError."""
        pass

    @abstractmethod
    def measure(self, endpoints: List[str], sink: SampleChannel):
        """Stream samples into sink until done. Raises MeasurementError."""
        pass

    def close(self):
        """Release resources once the cycle is over."""
        pass


class FastSampleSource(SampleSource):
    """Download throughput measured against fast.com (Netflix OCA) targets."""

    BASE_URL = "https://fast.com"
    API_URL = "https://api.fast.com/netflix/speedtest/v2"

    _SCRIPT_RE = re.compile(r'<script src="(/app-[^"]+\.js)"')
    _TOKEN_RE = re.compile(r'token:"([^"]+)"')

    def __init__(self, config: Optional[SourceConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or SourceConfig()
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.token: Optional[str] = None

    def init(self):
        """Scrape the API token out of the fast.com app script."""
        try:
            page = self._get_text(self.BASE_URL)
            match = self._SCRIPT_RE.search(page)
            if not match:
                raise SourceInitError("fast.com page has no app script")

            script = self._get_text(f"{self.BASE_URL}{match.group(1)}")
            match = self._TOKEN_RE.search(script)
            if not match:
                raise SourceInitError("fast.com app script has no API token")
        except requests.RequestException as e:
            raise SourceInitError(f"Unable to initialize fast.com client: {e}") from e

        self.token = match.group(1)
        logger.debug("fast.com token acquired")

    def list_endpoints(self) -> List[str]:
        """Ask the fast.com API for download targets."""
        if not self.token:
            raise SourceInitError("list_endpoints() called before init()")

        params = {"https": "true", "token": self.token, "urlCount": self.config.url_count}
        try:
            response = self.session.get(self.API_URL, params=params, timeout=self.config.timeout_s)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise SourceInitError(f"Unable to list fast.com targets: {e}") from e

        targets = payload.get("targets", []) if isinstance(payload, dict) else payload
        urls = [t["url"] for t in targets if isinstance(t, dict) and t.get("url")]
        if not urls:
            raise SourceInitError("fast.com returned no download targets")

        logger.debug(f"fast.com returned {len(urls)} targets")
        return urls

    def measure(self, endpoints: List[str], sink: SampleChannel):
        """Download all endpoints concurrently and emit the running throughput.

        One sample per sample_interval_s: total bytes received so far,
        converted to kbit/s over the elapsed time. Stops when every download
        has finished or max_duration_s has passed.
        """
        try:
            self._measure(endpoints, sink)
        except BaseException as e:
            sink.close(e)
            raise
        sink.close()

    def _measure(self, endpoints: List[str], sink: SampleChannel):
        if not endpoints:
            raise MeasurementError("No endpoints to measure")

        stop = threading.Event()
        lock = threading.Lock()
        state = {"bytes": 0}
        errors: List[BaseException] = []

        def download(url: str):
            try:
                with self.session.get(url, stream=True, timeout=self.config.timeout_s) as response:
                    response.raise_for_status()
                    for chunk in response.iter_content(chunk_size=self.config.chunk_size):
                        with lock:
                            state["bytes"] += len(chunk)
                        if stop.is_set():
                            break
            except requests.RequestException as e:
                logger.warning(f"Download from {url} failed: {e}")
                with lock:
                    errors.append(e)

        workers = [
            threading.Thread(target=download, args=(url,), daemon=True)
            for url in endpoints
        ]

        start = time.monotonic()
        for worker in workers:
            worker.start()

        samples = 0
        try:
            while True:
                done = not any(w.is_alive() for w in workers)
                stop.wait(self.config.sample_interval_s)
                elapsed = time.monotonic() - start

                with lock:
                    received = state["bytes"]

                if received > 0 and elapsed > 0:
                    sink.put(received * 8 / 1000 / elapsed)
                    samples += 1

                if done or elapsed >= self.config.max_duration_s:
                    break
        finally:
            stop.set()
            for worker in workers:
                worker.join(timeout=self.config.timeout_s)

        if len(errors) == len(workers):
            raise MeasurementError(f"All {len(workers)} downloads failed: {errors[0]}")

        logger.debug(f"Measurement finished: {samples} samples in {time.monotonic() - start:.1f}s")

    def close(self):
        """Close the HTTP session if this source created it."""
        if self._owns_session:
            self.session.close()

    def _get_text(self, url: str) -> str:
        response = self.session.get(url, timeout=self.config.timeout_s)
        response.raise_for_status()
        return response.text

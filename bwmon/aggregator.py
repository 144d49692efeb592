"""Sample channel and summary statistics over a stream of throughput samples."""
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional
import logging
import queue

import numpy as np

from bwmon.errors import EmptySampleStreamError, MeasurementError

logger = logging.getLogger(__name__)

_CLOSED = object()


class SampleChannel:
    """Single-consumer channel of float samples (kbit/s).

    The producer calls put() for every sample and close() exactly once when
    it is done. Iterating yields samples until the channel is closed; if it
    was closed with an error, that error is raised once the queued samples
    have been drained.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self._closed = False
        self._error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, sample: float):
        """Send one sample to the consumer."""
        if self._closed:
            raise MeasurementError("Sample channel is closed")
        self._queue.put(float(sample))

    def close(self, error: Optional[BaseException] = None):
        """Signal the end of the stream. Repeated calls are ignored."""
        if self._closed:
            return
        self._closed = True
        self._error = error
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[float]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                break
            yield item

        if self._error is not None:
            if isinstance(self._error, MeasurementError):
                raise self._error
            raise MeasurementError(str(self._error)) from self._error


@dataclass(frozen=True)
class Statistics:
    """Aggregate statistics of one measurement."""
    min: float
    max: float
    mean: float
    stddev: float
    count: int

    def as_fields(self) -> Dict[str, str]:
        """Return the statistics as line protocol field values."""
        return {
            "min": format_float(self.min),
            "max": format_float(self.max),
            "mean": format_float(self.mean),
            "stddev": format_float(self.stddev),
        }


def format_float(value: float) -> str:
    """Shortest positional decimal that round-trips to the same float64.

    >>> format_float(20.0)
    '20'
    >>> format_float(0.1)
    '0.1'
    """
    return np.format_float_positional(float(value), unique=True, trim='-')


def aggregate(samples: Iterable[float]) -> Statistics:
    """Drain samples and reduce them to min, max, mean and population stddev.

    Blocks until the iterable is exhausted (for a SampleChannel, until the
    producer closes it). Raises EmptySampleStreamError if no samples arrive.
    """
    values = np.fromiter((float(s) for s in samples), dtype=np.float64)

    if values.size == 0:
        raise EmptySampleStreamError("Measurement produced no samples")

    lo = float(values.min())
    hi = float(values.max())
    # Rounding in the sum can push the mean just outside [min, max].
    mean = float(np.clip(values.mean(), lo, hi))
    stddev = float(values.std(ddof=0))

    logger.debug(
        f"Aggregated {values.size} samples: min={lo} max={hi} mean={mean} stddev={stddev}"
    )

    return Statistics(min=lo, max=hi, mean=mean, stddev=stddev, count=int(values.size))

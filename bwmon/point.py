"""Data structure for a single reported observation."""
from dataclasses import dataclass, field
from typing import Dict, Optional
import time

from bwmon.aggregator import Statistics
from bwmon.config import Config


@dataclass
class Point:
    """A measurement with tags, fields and a nanosecond timestamp."""
    measurement: str
    time_ns: int
    tags: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, str] = field(default_factory=dict)

    def set_statistics(self, stats: Statistics):
        """Store the aggregate statistics as string fields."""
        self.fields.update(stats.as_fields())


def new_point(config: Config, time_ns: Optional[int] = None) -> Point:
    """Create a Point stamped now, with private copies of the config's tags and fields."""
    return Point(
        measurement=config.measurement,
        time_ns=time.time_ns() if time_ns is None else time_ns,
        tags=dict(config.tags),
        fields=dict(config.fields),
    )

"""InfluxDB line protocol encoding.

    measurement[,tag=value...] field=value[,field=value...] timestamp

Tags and fields are written in the insertion order of the point's dicts.
Nothing is escaped: keys and values must not contain commas, spaces or
equals signs.
"""
from bwmon.errors import LineProtocolError
from bwmon.point import Point


def encode_line(point: Point) -> str:
    """Serialize a point to one line (no trailing newline)."""
    tags = "".join(f",{k}={v}" for k, v in point.tags.items())
    fields = ",".join(f"{k}={v}" for k, v in point.fields.items())
    return f"{point.measurement}{tags} {fields} {point.time_ns}"


def decode_line(line: str) -> Point:
    """Parse a line produced by encode_line back into a Point."""
    parts = line.rstrip("\n").split(" ")
    if len(parts) != 3:
        raise LineProtocolError(f"Expected 3 space-separated blocks, got {len(parts)}: {line!r}")

    head, field_block, timestamp = parts

    try:
        time_ns = int(timestamp)
    except ValueError:
        raise LineProtocolError(f"Invalid timestamp: {timestamp!r}") from None

    measurement, *tag_items = head.split(",")
    if not measurement:
        raise LineProtocolError(f"Missing measurement name: {line!r}")

    return Point(
        measurement=measurement,
        time_ns=time_ns,
        tags=_parse_pairs(tag_items),
        fields=_parse_pairs(field_block.split(",") if field_block else []),
    )


def _parse_pairs(items) -> dict:
    pairs = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise LineProtocolError(f"Invalid key=value pair: {item!r}")
        pairs[key] = value
    return pairs

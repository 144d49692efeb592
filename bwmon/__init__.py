"""Bandwidth monitor that reports throughput statistics to InfluxDB."""

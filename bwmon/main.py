"""Main entry point for the bandwidth monitor."""
import argparse
import logging
import sys
import signal

from pythonjsonlogger.json import JsonFormatter

from bwmon.config import APP_NAME, DEFAULT_DB_URL, VERSION, load_config, resolve_hostname, with_identity_tags
from bwmon.engine import MonitorEngine
from bwmon.errors import ConfigError
from bwmon.self_metrics import SelfMetrics


def setup_logging(log_level: str, log_format: str, debug: bool = False):
    """Setup logging configuration.

    Debug mode forces DEBUG level and adds the source location to every record.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    if debug:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)

    if log_format == "json":
        fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
        if debug:
            fmt = "%(asctime)s %(levelname)s %(name)s %(pathname)s %(lineno)d %(message)s"
        handler.setFormatter(JsonFormatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        if debug:
            fmt = "%(asctime)s | %(levelname)-8s | %(pathname)s:%(lineno)d | %(message)s"
        handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))

    logging.basicConfig(level=level, handlers=[handler], force=True)

    # Reduce noise from some libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Periodically measure bandwidth and write the statistics to InfluxDB"
    )
    parser.add_argument("-d", "--debug", action="store_true", default=None, help="Log debugging messages.")
    parser.add_argument("-i", "--interval", type=int, dest="interval_s", help="Measurement interval in seconds. (default: 300)")
    parser.add_argument("-m", "--measurement", help="Measurement name. (default: bandwidth)")
    parser.add_argument("-u", "--url", dest="db_url", help=f"InfluxDB URL (default: {DEFAULT_DB_URL})")
    parser.add_argument("-c", "--config", help="Optional YAML configuration file")
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    parser.add_argument("--metrics-port", type=int, help="Serve self-metrics on this port (default: disabled)")
    return parser


def main(argv=None):
    """Main function."""
    args = build_parser().parse_args(argv)

    overrides = {
        "debug": args.debug,
        "interval_s": args.interval_s,
        "measurement": args.measurement,
        "db_url": args.db_url,
        "log_level": args.log_level,
        "metrics_port": args.metrics_port,
    }

    try:
        config = load_config(args.config, overrides)
        config = with_identity_tags(config, resolve_hostname())
    except ConfigError as e:
        print(f"{APP_NAME}: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_level, config.log_format, config.debug)
    logger = logging.getLogger(__name__)

    if config.debug:
        logger.debug(f"{APP_NAME} {VERSION}")

    logger.info(f"Writing '{config.measurement}' to {config.db_url} every {config.interval_s}s")

    self_metrics = SelfMetrics()
    if config.metrics_port:
        self_metrics.serve(config.metrics_port)

    engine = MonitorEngine(config, self_metrics=self_metrics)

    # Setup signal handlers
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        engine.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    engine.run()


if __name__ == "__main__":
    main()

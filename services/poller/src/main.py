import argparse
import logging
import signal
import sys

import structlog

from .config import Settings, load_settings
from .errors import ConfigurationError
from .fetcher import TelemetryFetcher
from .growatt_client import GrowattClient
from .influx_sink import InfluxSink
from .models import CycleStatus, SinkKind
from .pvoutput_sink import PVOutputSink
from .runner import PollerRunner
from .sink import Sink
from .weather_client import WeatherClient

logger = structlog.get_logger()


def configure_logging(level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog for single-line, timestamp-prefixed output on stdout."""
    processors = [
        structlog.processors.TimeStamper(fmt="%d-%m-%Y %H:%M:%S", utc=False),
        structlog.processors.add_log_level,
    ]
    if log_format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
    )


def build_sink(settings: Settings) -> Sink:
    """Construct the sink selected by settings."""
    if settings.sink == SinkKind.PVOUTPUT:
        return PVOutputSink(
            api_key=settings.pvoutput_apikey,
            system_id=settings.pvoutput_systemid,
            base_url=settings.pvoutput_url,
            timezone_name=settings.pvoutput_timezone,
            timeout=settings.http_timeout_seconds,
        )
    return InfluxSink(
        url=settings.influx_url,
        token=settings.influx_token,
        organization=settings.influx_organization,
        bucket=settings.influx_database,
        timeout=settings.http_timeout_seconds,
    )


def build_weather_client(settings: Settings) -> WeatherClient | None:
    """Weather enrichment only applies to PVOutput and only when fully configured."""
    if settings.sink != SinkKind.PVOUTPUT or not settings.weather_configured:
        return None
    return WeatherClient(
        api_key=settings.owm_apikey,
        latitude=settings.owm_lat,
        longitude=settings.owm_long,
        units=settings.owm_units,
        base_url=settings.owm_url,
        timeout=settings.http_timeout_seconds,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Poll a Growatt inverter and forward readings to InfluxDB or PVOutput"
    )
    parser.add_argument(
        "--sink",
        type=str,
        choices=[s.value for s in SinkKind],
        default=None,
        help="Destination for readings (overrides SINK, default 'influx')",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )
    return parser.parse_args(argv)


def log_config_summary(settings: Settings) -> None:
    """Log a startup summary. Secrets are left out."""
    logger.info(
        "poller_service_starting",
        sink=settings.sink.value,
        growatt_server_url=settings.growatt_server_url,
        influx_url=settings.influx_url if settings.sink == SinkKind.INFLUX else None,
        pvoutput_system_id=settings.pvoutput_systemid if settings.sink == SinkKind.PVOUTPUT else None,
        weather_enabled=settings.sink == SinkKind.PVOUTPUT and settings.weather_configured,
        sleep_interval_seconds=settings.sleep_interval_seconds,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the poller service."""
    args = parse_args(argv)
    overrides = {"sink": SinkKind(args.sink)} if args.sink else {}

    configure_logging()
    try:
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        logger.error("configuration_invalid", error=str(e))
        return 1

    configure_logging(settings.log_level, settings.log_format)
    log_config_summary(settings)

    growatt = GrowattClient(
        username=settings.growatt_username,
        password=settings.growatt_password,
        server_url=settings.growatt_server_url,
        timeout=settings.http_timeout_seconds,
    )
    sink = build_sink(settings)
    weather = build_weather_client(settings)

    runner = PollerRunner(
        fetcher=TelemetryFetcher(growatt),
        sink=sink,
        weather=weather,
        interval_seconds=settings.sleep_interval_seconds,
    )

    def signal_handler(signum: int, frame) -> None:
        """Handle shutdown signals."""
        logger.info("shutdown_requested", signal=signum)
        runner.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        if args.once:
            outcome = runner.run_cycle()
            return 1 if outcome.status == CycleStatus.FAILED else 0
        runner.run()
        return 0
    finally:
        logger.info("poller_service_stopping")
        growatt.close()
        sink.close()
        if weather is not None:
            weather.close()
        logger.info("poller_service_stopped")


if __name__ == "__main__":
    sys.exit(main())

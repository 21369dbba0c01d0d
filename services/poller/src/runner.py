import threading

import structlog

from .errors import DeliveryFailure, EnrichmentFailure, PollerError, SkipCycle
from .fetcher import TelemetryFetcher
from .models import CycleOutcome, Enrichment
from .sink import Sink
from .weather_client import WeatherClient

logger = structlog.get_logger()

DEFAULT_INTERVAL_SECONDS = 60


class PollerRunner:
    """Drives the fetch, enrich, deliver, sleep loop for one device/sink pair.

    Every per-cycle failure is logged and turned into a CycleOutcome; none
    escapes run(). The sleep is a wait on the stop event, so stop() ends it
    immediately. A cycle already in flight is never interrupted.

    Runners share nothing, so several can run side by side on their own threads.
    """

    def __init__(
        self,
        fetcher: TelemetryFetcher,
        sink: Sink,
        weather: WeatherClient | None = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        stop_event: threading.Event | None = None,
    ):
        self._fetcher = fetcher
        self._sink = sink
        self._weather = weather
        self._interval_seconds = interval_seconds
        self._stop_event = stop_event or threading.Event()
        self.last_outcome: CycleOutcome | None = None

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Request a graceful stop at the next cycle boundary."""
        self._stop_event.set()

    def run_cycle(self) -> CycleOutcome:
        """Run one fetch, enrich, deliver sequence."""
        logger.info("cycle_started", sink=self._sink.name)

        try:
            reading = self._fetcher.fetch()
        except SkipCycle as e:
            logger.info("cycle_skipped", reason=e.reason)
            return CycleOutcome.skipped(e.reason)
        except PollerError as e:
            logger.error("fetch_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
            return CycleOutcome.failed(e)
        except Exception as e:
            logger.error("fetch_failed_unexpectedly", error=str(e), exc_info=True)
            return CycleOutcome.failed(e)

        enrichment = self._enrich()

        try:
            self._sink.deliver(reading, enrichment)
        except DeliveryFailure as e:
            logger.error("delivery_failed", sink=self._sink.name, error=str(e), exc_info=True)
            return CycleOutcome.failed(e)
        except Exception as e:
            logger.error(
                "delivery_failed_unexpectedly", sink=self._sink.name, error=str(e), exc_info=True
            )
            return CycleOutcome.failed(e)

        logger.info("reading_delivered", sink=self._sink.name)
        return CycleOutcome.delivered(reading)

    def run(self, max_cycles: int | None = None) -> int:
        """Loop until stop() is called, or until max_cycles cycles have run.

        Returns the number of cycles run.
        """
        logger.info("runner_starting", sink=self._sink.name, interval=self._interval_seconds)
        cycles = 0

        while not self._stop_event.is_set():
            self.last_outcome = self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            logger.info("sleeping", seconds=self._interval_seconds)
            self._stop_event.wait(timeout=self._interval_seconds)

        logger.info("runner_stopped", sink=self._sink.name, cycles=cycles)
        return cycles

    def _enrich(self) -> Enrichment | None:
        if self._weather is None:
            return None
        try:
            return self._weather.fetch_temperature()
        except EnrichmentFailure as e:
            logger.warning("enrichment_failed", error=str(e), exc_info=True)
        except Exception as e:
            logger.warning("enrichment_failed_unexpectedly", error=str(e), exc_info=True)
        return None

from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Callable

import structlog

from .errors import ParseFailure, SkipCycle
from .growatt_client import GrowattClient
from .models import Reading, UpstreamDevice

logger = structlog.get_logger()

MAX_POWER_WATTS = 2**31 - 1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_decimal(value: str | None, field: str) -> Decimal:
    if value is None:
        raise ParseFailure(f"Device field '{field}' is missing")
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation as e:
        raise ParseFailure(f"Device field '{field}' is not numeric: {value!r}") from e
    if not parsed.is_finite() or parsed < 0:
        raise ParseFailure(f"Device field '{field}' is not a non-negative number: {value!r}")
    return parsed


def parse_device(device: UpstreamDevice, observed_at: datetime) -> Reading:
    """Normalize a raw device record into a Reading.

    Both numeric fields must parse or nothing is built. Power is rounded
    half-to-even to whole watts and must fit a 32-bit signed integer.
    """
    power = _parse_decimal(device.power, "power")
    energy_kwh = _parse_decimal(device.e_today, "eToday")

    if power > MAX_POWER_WATTS:
        raise ParseFailure(f"Device field 'power' is out of range: {device.power!r}")

    return Reading(
        power_now_watts=int(power.quantize(Decimal(1), rounding=ROUND_HALF_EVEN)),
        energy_today_kwh=energy_kwh,
        observed_at=observed_at,
    )


class TelemetryFetcher:
    """Resolves the device of interest and derives one Reading per call.

    Selection is the first device of the first plant. Accounts with several
    plants or devices only ever report the first one. Plant and device ids are
    resolved again on every call.
    """

    def __init__(self, client: GrowattClient, clock: Callable[[], datetime] = _utc_now):
        self._client = client
        self._clock = clock

    def fetch(self) -> Reading:
        """Fetch the current reading.

        Raises:
            SkipCycle: The account has no plant, or the plant has no device.
            ParseFailure: The device's power or energy field is not numeric.
            UpstreamUnavailable: A Growatt call failed.
        """
        plants = self._client.get_plant_list()
        if not plants:
            raise SkipCycle("no plant")

        plant_id = plants[0].get("plantId") or plants[0].get("id")
        if plant_id is None:
            raise SkipCycle("no plant")

        devices = self._client.get_device_list(str(plant_id))
        if not devices:
            raise SkipCycle("no device")

        try:
            device = UpstreamDevice.model_validate(devices[0])
        except ValueError as e:
            raise ParseFailure(f"Device record has unexpected shape: {e}") from e

        reading = parse_device(device, observed_at=self._clock())
        logger.info(
            "reading_fetched",
            plant_id=str(plant_id),
            device=device.serial,
            power_now_w=reading.power_now_watts,
            energy_today_w=str(reading.energy_today_watts),
        )
        return reading

from datetime import datetime, tzinfo
from decimal import Decimal
from zoneinfo import ZoneInfo

import httpx
import structlog
from pydantic import BaseModel, Field

from .errors import DeliveryFailure
from .models import Enrichment, Reading

logger = structlog.get_logger()


class StatusPost(BaseModel):
    """A PVOutput add-status submission."""

    timestamp: datetime = Field(description="Local time of the reading")
    energy_generation_wh: int = Field(ge=0, description="Generation today in Wh (v1)")
    power_generation_w: int = Field(ge=0, description="Instantaneous generation in W (v2)")
    temperature_c: Decimal | None = Field(default=None, description="Ambient temperature (v5)")

    model_config = {"frozen": True}

    def to_form(self) -> dict[str, str]:
        form = {
            "d": self.timestamp.strftime("%Y%m%d"),
            "t": self.timestamp.strftime("%H:%M"),
            "v1": str(self.energy_generation_wh),
            "v2": str(self.power_generation_w),
        }
        if self.temperature_c is not None:
            form["v5"] = format(self.temperature_c, "f")
        return form


def build_status(
    reading: Reading,
    enrichment: Enrichment | None = None,
    tz: tzinfo | None = None,
) -> StatusPost:
    """Build a status submission in local time (host zone when tz is None)."""
    return StatusPost(
        timestamp=reading.observed_at.astimezone(tz),
        energy_generation_wh=int(reading.energy_today_watts),
        power_generation_w=reading.power_now_watts,
        temperature_c=enrichment.temperature_celsius if enrichment is not None else None,
    )


class PVOutputSink:
    """Submits one status per reading to PVOutput."""

    name = "pvoutput"

    def __init__(
        self,
        api_key: str,
        system_id: int,
        base_url: str = "https://pvoutput.org/service/r2/",
        timezone_name: str | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self._api_key = api_key
        self._system_id = system_id
        self._status_url = f"{base_url.rstrip('/')}/addstatus.jsp"
        self._tz = ZoneInfo(timezone_name) if timezone_name else None
        self._client = client or httpx.Client(timeout=timeout)

    def deliver(self, reading: Reading, enrichment: Enrichment | None = None) -> None:
        status = build_status(reading, enrichment, tz=self._tz)
        try:
            response = self._client.post(
                self._status_url,
                data=status.to_form(),
                headers={
                    "X-Pvoutput-Apikey": self._api_key,
                    "X-Pvoutput-SystemId": str(self._system_id),
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryFailure(f"PVOutput status submission failed: {e}") from e

        logger.info(
            "pvoutput_status_sent",
            system_id=self._system_id,
            with_temperature=status.temperature_c is not None,
        )

    def close(self) -> None:
        self._client.close()

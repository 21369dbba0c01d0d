from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, computed_field


class SinkKind(str, Enum):
    """Destination for delivered readings."""

    INFLUX = "influx"
    PVOUTPUT = "pvoutput"


class CycleStatus(str, Enum):
    """Result of a single poll cycle."""

    DELIVERED = "delivered"
    SKIPPED = "skipped"
    FAILED = "failed"


class UpstreamDevice(BaseModel):
    """Raw inverter record from the Growatt device list.

    Numeric values arrive as strings and are parsed by the fetcher, not here,
    so that a bad value surfaces as a ParseFailure instead of a validation error.
    """

    serial: str | None = Field(default=None, validation_alias=AliasChoices("deviceSn", "sn"))
    power: str | None = Field(default=None, validation_alias=AliasChoices("power", "pac"))
    e_today: str | None = Field(default=None, validation_alias=AliasChoices("eToday", "e_today"))

    model_config = {"frozen": True, "extra": "ignore", "coerce_numbers_to_str": True}


class Reading(BaseModel):
    """One normalized power/energy sample for a single poll cycle."""

    power_now_watts: int = Field(ge=0, description="Instantaneous power in watts")
    energy_today_kwh: Decimal = Field(ge=0, description="Energy generated today in kWh")
    observed_at: datetime = Field(description="Poller read time (UTC)")

    model_config = {"frozen": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def energy_today_watts(self) -> Decimal:
        # Exponent shift, so no digits are lost to the decimal context precision
        sign, digits, exponent = self.energy_today_kwh.as_tuple()
        return Decimal((sign, digits, exponent + 3))


class Enrichment(BaseModel):
    """Ambient temperature attached to a reading before delivery."""

    temperature_celsius: Decimal

    model_config = {"frozen": True}


class CycleOutcome(BaseModel):
    """Tagged result of one cycle, used for logging and tests only."""

    status: CycleStatus
    reading: Reading | None = None
    reason: str | None = None
    error: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def delivered(cls, reading: Reading) -> "CycleOutcome":
        return cls(status=CycleStatus.DELIVERED, reading=reading)

    @classmethod
    def skipped(cls, reason: str) -> "CycleOutcome":
        return cls(status=CycleStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, error: BaseException) -> "CycleOutcome":
        return cls(status=CycleStatus.FAILED, error=f"{type(error).__name__}: {error}")

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from .errors import ConfigurationError
from .models import SinkKind


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class Settings(BaseSettings):
    """Poller service configuration.

    Only the Growatt credentials and the credentials of the selected sink are
    required. Blank or whitespace-only values count as missing.
    """

    sink: SinkKind = Field(default=SinkKind.INFLUX)

    # Growatt monitoring API
    growatt_username: str | None = Field(default=None)
    growatt_password: str | None = Field(default=None)
    growatt_server_url: str = Field(default="https://server.growatt.com/")

    # InfluxDB v2
    influx_url: str | None = Field(default=None)
    influx_token: str | None = Field(default=None)
    influx_organization: str | None = Field(default=None)
    influx_database: str | None = Field(default=None)  # bucket

    # PVOutput
    pvoutput_url: str = Field(default="https://pvoutput.org/service/r2/")
    pvoutput_apikey: str | None = Field(default=None)
    pvoutput_systemid: int | None = Field(default=None)
    pvoutput_timezone: str | None = Field(default=None)  # IANA name, host local time if unset

    # OpenWeatherMap (optional)
    owm_url: str = Field(default="https://api.openweathermap.org/data/2.5/")
    owm_apikey: str | None = Field(default=None)
    owm_lat: float | None = Field(default=None)
    owm_long: float | None = Field(default=None)
    owm_units: str = Field(default="metric")

    # Service
    sleep_interval_seconds: int = Field(default=60, gt=0)
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # console | json

    model_config = {
        "env_file": "settings.env",
        "env_file_encoding": "utf-8",
        "env_ignore_empty": True,
        "extra": "ignore",
    }

    @field_validator("pvoutput_timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown PVOUTPUT_TIMEZONE {value!r}") from e
        return value

    @model_validator(mode="after")
    def _require_credentials(self) -> "Settings":
        required = {
            "GROWATT_USERNAME": self.growatt_username,
            "GROWATT_PASSWORD": self.growatt_password,
        }
        if self.sink == SinkKind.INFLUX:
            required.update(
                {
                    "INFLUX_URL": self.influx_url,
                    "INFLUX_TOKEN": self.influx_token,
                    "INFLUX_ORGANIZATION": self.influx_organization,
                    "INFLUX_DATABASE": self.influx_database,
                }
            )
        else:
            required.update(
                {
                    "PVOUTPUT_APIKEY": self.pvoutput_apikey,
                    "PVOUTPUT_SYSTEMID": self.pvoutput_systemid,
                }
            )

        missing = [name for name, value in required.items() if _is_blank(value)]
        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")
        return self

    @property
    def weather_configured(self) -> bool:
        """True when key, latitude and longitude are all present."""
        return not (
            _is_blank(self.owm_apikey) or self.owm_lat is None or self.owm_long is None
        )


def load_settings(**overrides) -> Settings:
    """Build Settings from the environment, raising ConfigurationError if invalid."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e

from decimal import Decimal, InvalidOperation

import httpx
import structlog

from .errors import EnrichmentFailure
from .models import Enrichment

logger = structlog.get_logger()


class WeatherClient:
    """Client for current ambient temperature from the OpenWeatherMap API."""

    def __init__(
        self,
        api_key: str,
        latitude: float,
        longitude: float,
        units: str = "metric",
        base_url: str = "https://api.openweathermap.org/data/2.5/",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self._api_key = api_key
        self._latitude = latitude
        self._longitude = longitude
        self._units = units
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._client = client or httpx.Client(timeout=timeout)

    def fetch_temperature(self) -> Enrichment:
        """Fetch the current temperature at the configured coordinates."""
        params = {
            "lat": self._latitude,
            "lon": self._longitude,
            "units": self._units,
            "appid": self._api_key,
        }

        try:
            response = self._client.get(f"{self._base_url}weather", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise EnrichmentFailure(f"Weather request failed: {e}") from e
        except ValueError as e:
            raise EnrichmentFailure("Weather response is not JSON") from e

        enrichment = self._parse_response(data)
        logger.info("temperature_fetched", temperature_c=str(enrichment.temperature_celsius))
        return enrichment

    def _parse_response(self, data: dict) -> Enrichment:
        """Extract main.temp from an OpenWeatherMap response."""
        try:
            temp = data["main"]["temp"]
        except (KeyError, TypeError) as e:
            raise EnrichmentFailure("Weather response has no main.temp") from e

        if temp is None or isinstance(temp, bool):
            raise EnrichmentFailure(f"Weather temperature is not numeric: {temp!r}")
        try:
            # str() keeps the JSON float's short form (18.4, not 18.399999...)
            value = Decimal(str(temp))
        except InvalidOperation as e:
            raise EnrichmentFailure(f"Weather temperature is not numeric: {temp!r}") from e
        if not value.is_finite():
            raise EnrichmentFailure(f"Weather temperature is not numeric: {temp!r}")

        return Enrichment(temperature_celsius=value)

    def close(self) -> None:
        self._client.close()

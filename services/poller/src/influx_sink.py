import structlog
import urllib3
from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS
from influxdb_client.rest import ApiException

from .errors import DeliveryFailure
from .models import Enrichment, Reading

logger = structlog.get_logger()

MEASUREMENT = "power"


def build_point(reading: Reading, measurement: str = MEASUREMENT) -> Point:
    """Build the InfluxDB point for a reading, timestamped at ns precision."""
    return (
        Point(measurement)
        .field("power_now", reading.power_now_watts)
        .field("power_todayTotalKwh", float(reading.energy_today_kwh))
        .field("power_todayTotalW", float(reading.energy_today_watts))
        .time(reading.observed_at, WritePrecision.NS)
    )


class InfluxSink:
    """Writes one point per reading to an InfluxDB v2 bucket."""

    name = "influx"

    def __init__(
        self,
        url: str,
        token: str,
        organization: str,
        bucket: str,
        timeout: float = 30.0,
        client: InfluxDBClient | None = None,
    ):
        self._organization = organization
        self._bucket = bucket
        self._client = client or InfluxDBClient(
            url=url, token=token, org=organization, timeout=int(timeout * 1000)
        )
        self._write_api = self._client.write_api(write_options=SYNCHRONOUS)

    def deliver(self, reading: Reading, enrichment: Enrichment | None = None) -> None:
        """Write the reading synchronously. Enrichment is not stored."""
        point = build_point(reading)
        try:
            self._write_api.write(bucket=self._bucket, org=self._organization, record=point)
        except ApiException as e:
            raise DeliveryFailure(f"InfluxDB write failed (HTTP {e.status}): {e.reason}") from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise DeliveryFailure(f"InfluxDB write failed: {e}") from e

        logger.info("influx_point_written", bucket=self._bucket, organization=self._organization)

    def close(self) -> None:
        self._client.close()

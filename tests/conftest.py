from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import structlog

from services.poller.src.models import Enrichment, Reading


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any structlog configuration done by main() during a test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def mock_http_client():
    """MagicMock standing in for an injected httpx.Client."""
    client = MagicMock()
    response = MagicMock()
    response.status_code = 200
    client.request.return_value = response
    client.get.return_value = response
    client.post.return_value = response
    return client


@pytest.fixture
def observed_at():
    return datetime(2024, 6, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)


@pytest.fixture
def sample_reading(observed_at):
    return Reading(
        power_now_watts=523,
        energy_today_kwh=Decimal("2.150"),
        observed_at=observed_at,
    )


@pytest.fixture
def sample_enrichment():
    return Enrichment(temperature_celsius=Decimal("18.4"))


@pytest.fixture
def sample_login_response():
    """Sample Growatt login response for testing."""
    return {"back": {"success": True, "user": {"id": 4711, "accountName": "demo"}}}


@pytest.fixture
def sample_plant_list_response():
    """Sample Growatt plant list response for testing."""
    return {
        "back": {
            "data": [
                {"plantId": "P1", "plantName": "Roof"},
                {"plantId": "P2", "plantName": "Shed"},
            ],
            "success": True,
        }
    }


@pytest.fixture
def sample_device_list_response():
    """Sample Growatt device list response for testing."""
    return {
        "deviceList": [
            {"deviceSn": "INV001", "power": "523", "eToday": "2.150", "eTotal": "1234.5"},
            {"deviceSn": "INV002", "power": "12", "eToday": "0.1"},
        ]
    }


@pytest.fixture
def sample_weather_response():
    """Sample OpenWeatherMap current weather response for testing."""
    return {
        "coord": {"lon": 5.12, "lat": 52.09},
        "main": {"temp": 18.4, "feels_like": 17.9, "pressure": 1015, "humidity": 72},
        "name": "Utrecht",
    }

import hashlib

import httpx
import structlog

from .errors import UpstreamUnavailable

logger = structlog.get_logger()


def hash_password(password: str) -> str:
    """Hash a password the way the Growatt server expects.

    MD5 hex digest with every '0' at an even index replaced by 'c'.
    """
    digest = list(hashlib.md5(password.encode("utf-8")).hexdigest())
    for i in range(0, len(digest), 2):
        if digest[i] == "0":
            digest[i] = "c"
    return "".join(digest)


class GrowattClient:
    """Client for the Growatt server API.

    Holds one authenticated session for the process lifetime. Login happens
    lazily on first use and is never refreshed.
    """

    def __init__(
        self,
        username: str,
        password: str,
        server_url: str = "https://server.growatt.com/",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self._username = username
        self._password = password
        self._server_url = server_url if server_url.endswith("/") else f"{server_url}/"
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._user_id: str | None = None

    def login(self) -> str:
        """Authenticate and return the account's user id."""
        logger.info("growatt_login", server_url=self._server_url)
        data = self._request(
            "POST",
            "newTwoLoginAPI.do",
            data={"userName": self._username, "password": hash_password(self._password)},
        )

        back = data.get("back") or {}
        if not back.get("success"):
            raise UpstreamUnavailable(f"Growatt login rejected: {back.get('msg', 'unknown reason')}")

        try:
            self._user_id = str(back["user"]["id"])
        except (KeyError, TypeError) as e:
            raise UpstreamUnavailable("Growatt login response has no user id") from e
        return self._user_id

    def get_plant_list(self) -> list[dict]:
        """Fetch the plants of the authenticated account, in server order."""
        if self._user_id is None:
            self.login()

        data = self._request("GET", "PlantListAPI.do", params={"userId": self._user_id})
        plants = (data.get("back") or {}).get("data") or []
        logger.debug("plants_fetched", count=len(plants))
        return plants

    def get_device_list(self, plant_id: str) -> list[dict]:
        """Fetch the devices of a plant, in server order."""
        if self._user_id is None:
            self.login()

        data = self._request(
            "GET",
            "newTwoPlantAPI.do",
            params={"op": "getAllDeviceList", "plantId": plant_id, "language": 1},
        )
        devices = data.get("deviceList") or []
        logger.debug("devices_fetched", plant_id=plant_id, count=len(devices))
        return devices

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self._server_url}{path}"
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Growatt request to {path} failed: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable(f"Growatt response from {path} is not JSON") from e

        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"Growatt response from {path} is not an object")
        return data

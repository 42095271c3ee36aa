"""
Thin Real-Debrid REST client.

Every method performs one HTTP call and returns the decoded JSON. HTTP and
transport errors surface as ``requests.RequestException``; deciding what they
mean is the resolver's job.
"""

from typing import Any, Optional

import requests


API_BASE_URL = "https://api.real-debrid.com/rest/1.0"
REQUEST_TIMEOUT = 30


class RealDebridClient:
    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        base_url: str = API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(
        self, method: str, path: str, data: Optional[dict] = None, params: Optional[dict] = None
    ) -> Any:
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            data=data,
            params=params,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        # selectFiles answers 204 No Content
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def list_torrents(self, limit: int = 100) -> list[dict[str, Any]]:
        """The account's torrents, newest first."""
        return self._request("GET", "/torrents", params={"limit": limit}) or []

    def add_magnet(self, magnet: str) -> str:
        """Submit a magnet link and return the new torrent id."""
        payload = self._request("POST", "/torrents/addMagnet", data={"magnet": magnet})
        return payload["id"]

    def select_all_files(self, torrent_id: str) -> None:
        self._request("POST", f"/torrents/selectFiles/{torrent_id}", data={"files": "all"})

    def torrent_info(self, torrent_id: str) -> dict[str, Any]:
        """Status, progress and hoster links of one torrent."""
        return self._request("GET", f"/torrents/info/{torrent_id}")

    def unrestrict_link(self, link: str) -> dict[str, Any]:
        """Turn a hoster link into a direct download (``download``, ``filename``, ``filesize``)."""
        return self._request("POST", "/unrestrict/link", data={"link": link})

import asyncio
import logging
import threading
from typing import Any

import requests

from ..core.config import settings
from ..exceptions import TransportError

logger = logging.getLogger(__name__)


def _error_message(response: requests.Response) -> str:
    """
    Extract the server's error message from a failed response.

    The API answers errors as {"error": "..."}; anything else falls back to
    the HTTP reason phrase.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])

    return response.reason or f"HTTP {response.status_code}"


class Transport:
    """
    JSON transport against the Link Tracker API.

    The blocking requests call runs in a worker thread so the event loop
    keeps serving other queries while a request is in flight. Each worker
    thread gets its own ``requests.Session``. An injected ``session`` is
    used from every thread as is.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or settings.API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self._session = session
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._lock = threading.Lock()
        if session is not None:
            self._prepare(session)

    def _prepare(self, session: requests.Session) -> requests.Session:
        session.headers.update({"Content-Type": "application/json"})
        with self._lock:
            self._sessions.append(session)
        return session

    @property
    def session(self) -> requests.Session:
        """Session of the calling thread"""
        if self._session is not None:
            return self._session

        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = self._prepare(requests.Session())
        return session

    def _send(self, method: str, path: str, params: dict | None = None, json: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = self.session.request(
                method, url, params=params, json=json, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransportError(f"Connection error: {e}") from e

        if response.status_code >= 400:
            raise TransportError(_error_message(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise TransportError("Response is not valid JSON", status_code=response.status_code) from e

    async def request(self, method: str, path: str, params: dict | None = None, json: Any = None) -> Any:
        return await asyncio.to_thread(self._send, method, path, params, json)

    async def get(self, path: str, params: dict | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

"""
HTTP client abstraction used by the transport.

The transport only needs "send a request, get status, headers and body".
``AiohttpClient`` implements that over an aiohttp session; tests and callers
with their own HTTP stack can supply any other ``HTTPClient``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import aiohttp

from ..errors import CommunicationErrorException, InvalidResponseException

logger = logging.getLogger(__name__)


@dataclass
class HTTPResponse:
    """Raw HTTP response. Header names are stored lower-cased."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    def __post_init__(self):
        self.headers = {name.lower(): value for name, value in self.headers.items()}

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


class HTTPClient(ABC):
    """Abstract base class for HTTP clients."""

    @abstractmethod
    async def request(self, method: str, url: str,
                      headers: Optional[Dict[str, str]] = None,
                      body: Optional[str] = None) -> HTTPResponse:
        """Send a request and return the response whatever its status."""
        pass

    async def close(self) -> None:
        """Release any held connections."""
        pass


class AiohttpClient(HTTPClient):
    """HTTP client backed by an aiohttp ``ClientSession``."""

    def __init__(self, timeout: float = 30.0,
                 session: Optional[aiohttp.ClientSession] = None,
                 user_agent: Optional[str] = None):
        self.timeout = timeout
        self.user_agent = user_agent
        self._session = session
        self._owns_session = session is None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {'User-Agent': self.user_agent} if self.user_agent else None
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=headers
            )
            self._owns_session = True
        return self._session

    async def request(self, method: str, url: str,
                      headers: Optional[Dict[str, str]] = None,
                      body: Optional[str] = None) -> HTTPResponse:
        session = self._get_session()
        self.logger.debug(f"Making {method} request to {url}")
        try:
            async with session.request(method, url, headers=headers,
                                       data=body.encode('utf-8') if body is not None else None) as response:
                raw = await response.read()
                response_headers = {name: value for name, value in response.headers.items()}
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"{method} {url} failed: {e!r}")
            raise CommunicationErrorException(f"Error communicating with {url}", cause=e)

        try:
            text = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise InvalidResponseException("Response body is not valid UTF-8", cause=e)

        self.logger.debug(f"{method} {url} returned {status}")
        return HTTPResponse(status=status, headers=response_headers, body=text)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            self.logger.info("Closing HTTP client")
            await self._session.close()
        self._session = None

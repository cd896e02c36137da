"""HTTP transport backed by a requests Session"""

import asyncio
import logging

from collections.abc import Mapping

import requests

from requests import Response, Session
from requests.cookies import RequestsCookieJar

from .errors import TransportError

log = logging.getLogger(__name__)


class RequestsTransport:
    """Sends requests with a `requests.Session`.  The blocking calls run in a worker thread so the event loop is never blocked."""

    def __init__(self, session: Session = None, timeout: float = 30):
        """Initializer, creates a new RequestsTransport.

        Args:
            session (Session, optional): The Session to send requests with.  A new one is created if this is not set. Defaults to None.
            timeout (float, optional): The number of seconds to wait for the server before giving up. Defaults to 30.
        """
        self.session: Session = session or Session()
        self.timeout = timeout

    @property
    def cookies(self) -> RequestsCookieJar:
        """The cookie jar of the underlying Session.  Cookies set by the server are stored here and sent with every later request."""
        return self.session.cookies

    @cookies.setter
    def cookies(self, jar: RequestsCookieJar) -> None:
        self.session.cookies = jar

    def _send(self, method: str, url: str, params: Mapping, headers: Mapping) -> Response:
        if method.upper() in ("GET", "HEAD"):
            return self.session.request(method, url, params=dict(params), headers=dict(headers), timeout=self.timeout)

        return self.session.request(method, url, data=dict(params), headers=dict(headers), timeout=self.timeout)

    async def send(self, method: str, url: str, params: Mapping, headers: Mapping = None) -> Response:
        """Sends a request.  `GET` requests carry `params` in the query string, anything else sends them as a form body.

        Args:
            method (str): The HTTP method to use.
            url (str): The url to send the request to.
            params (Mapping): The parameters to send.
            headers (Mapping, optional): Additional headers to send. Defaults to None.

        Raises:
            TransportError: If the server could not be reached.  Timeouts and connection failures are marked transient.

        Returns:
            Response: The server's response, whatever its status code.
        """
        try:
            return await asyncio.to_thread(self._send, method, url, params, headers or {})
        except (requests.ConnectionError, requests.Timeout) as e:
            log.debug("%s %s failed: %s", method, url, e)
            raise TransportError(f"Could not reach {url}: {e}", transient=True) from e
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

    def close(self) -> None:
        """Releases the connections held by the underlying Session."""
        self.session.close()

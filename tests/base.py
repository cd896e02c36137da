"""Shared template TestCase classes and methods for use in pwapi tests"""

import json

from collections.abc import Mapping
from pathlib import Path
from typing import Union
from unittest import IsolatedAsyncioTestCase

from requests import Response
from requests.cookies import RequestsCookieJar

from pwapi.async_wiki import AsyncWiki
from pwapi.backoff import BackoffPolicy


_RES = Path(__file__).parent / "res"

API_URL = "https://test.wikipedia.org/w/api.php"


def file_to_text(name: str, ext: str = "txt") -> str:
    """Gets the text from the specified `res` file as a `str`.

    Args:
        name (str): The name of the file, without its extension.
        ext (str, optional): The extension of the file.  Don't include the leading `.`. Defaults to "txt".

    Returns:
        str: The contents of `name`.
    """
    return (_RES / f"{name}.{ext}").read_text()


def file_to_json(name: str) -> dict:
    """Gets the text from the specified `res` file as json.  This is a shortcut for `json.loads(file_to_text(name, "json"))`.

    Args:
        name (str): The name of the file, without its extension.

    Returns:
        dict: The contents of `name`, as json.
    """
    return json.loads(file_to_text(name, "json"))


def make_response(body: Union[dict, str], status: int = 200) -> Response:
    """Creates a requests `Response` as if it was returned by the server.

    Args:
        body (Union[dict, str]): The body of the response.  A `dict` is serialized to json.
        status (int, optional): The HTTP status code. Defaults to 200.

    Returns:
        Response: The response.
    """
    r = Response()
    r.status_code = status
    r._content = (json.dumps(body) if isinstance(body, Mapping) else body).encode()
    r.encoding = "utf-8"
    return r


class FakeTransport:
    """Stands in for `RequestsTransport`.  Replays scripted responses in order and records every request it is asked to send."""

    def __init__(self, *replies: Union[dict, Response, Exception]):
        """Initializer, creates a new FakeTransport.

        Args:
            replies (Union[dict, Response, Exception]): The replies to hand out, in order.  `dict`s are wrapped in a `Response`, exceptions are raised.
        """
        self.replies = list(replies)
        self.sent: list[tuple[str, str, dict, dict]] = []
        self.cookies = RequestsCookieJar()
        self.closed = False

    def queue(self, *replies: Union[dict, Response, Exception]) -> None:
        self.replies.extend(replies)

    @property
    def sent_params(self) -> list[dict]:
        return [s[2] for s in self.sent]

    async def send(self, method: str, url: str, params: Mapping, headers: Mapping = None) -> Response:
        self.sent.append((method, url, dict(params), dict(headers or {})))

        if not self.replies:
            raise AssertionError(f"Unexpected {method} request with params: {dict(params)}")

        if isinstance(r := self.replies.pop(0), Exception):
            raise r

        return r if isinstance(r, Response) else make_response(r)

    def close(self) -> None:
        self.closed = True


def new_wiki(*replies: Union[dict, Response, Exception], **kwargs) -> AsyncWiki:
    """Convienence method, creates a new `AsyncWiki` pointed to testwiki and backed by a `FakeTransport`.  `kwargs` will be passed to the `AsyncWiki` constructor.

    Returns:
        AsyncWiki: A new AsyncWiki pointed to testwiki.
    """
    kwargs.setdefault("backoff", BackoffPolicy(lag_delay=0, transport_delay=0))
    return AsyncWiki(API_URL, transport=FakeTransport(*replies), **kwargs)


class WikiTestCase(IsolatedAsyncioTestCase):
    """Basic template for tests driving an `AsyncWiki` with scripted responses"""

    def setUp(self) -> None:
        """Sets up an `AsyncWiki` pointed to testwiki, with no scripted responses"""
        self.wiki = new_wiki()
        self.transport: FakeTransport = self.wiki.transport

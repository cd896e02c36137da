"""Blocking client for a MediaWiki instance's API"""

import asyncio
import logging

from collections.abc import Generator, Mapping
from pathlib import Path
from typing import Any, Awaitable

from .async_wiki import AsyncWiki
from .continuation import DEFAULT_ENTITY_KEYS
from .dwrap import SiteInfo, User
from .session import Credentials

log = logging.getLogger(__name__)


class Wiki:
    """Blocking interface to a MediaWiki instance's API.  Every call runs the corresponding `AsyncWiki` coroutine to completion on an event loop owned by this Wiki."""

    def __init__(self, api_url: str = "https://en.wikipedia.org/w/api.php", username: str = None, password: str = None, credentials: Credentials = None, **kwargs: Any):
        """Initializer, creates a new Wiki object.  If `username` is set, saved cookies are tried first, then a login with `password`.

        Args:
            api_url (str, optional): The full url of the wiki's `api.php`. Defaults to "https://en.wikipedia.org/w/api.php".
            username (str, optional): The username to login as.  Defaults to None.
            password (str, optional): The password to use when logging in.  Does nothing if `username` is not set.  Defaults to None.
            credentials (Credentials, optional): See `AsyncWiki`.  Defaults to None.
            kwargs (Any): Passed on to the `AsyncWiki` constructor.
        """
        self._loop = asyncio.new_event_loop()
        self.async_wiki = AsyncWiki(api_url, credentials, **kwargs)

        try:
            if username and not self._run(self.async_wiki.load_cookies(username)) and password:
                self.login(username, password)
        except Exception:
            self.close()
            raise

    def __repr__(self) -> str:
        return repr(self.async_wiki)

    def __enter__(self) -> "Wiki":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _run(self, coro: Awaitable) -> Any:
        """Runs `coro` to completion on this Wiki's event loop."""
        return self._loop.run_until_complete(coro)

    def close(self) -> None:
        """Releases the transport and shuts down this Wiki's event loop.  This Wiki cannot be used afterwards."""
        if self._loop.is_closed():
            return

        log.debug("%s: Closing event loop", self)
        self.async_wiki.close()
        self._loop.run_until_complete(self._loop.shutdown_default_executor())
        self._loop.close()

    @property
    def is_logged_in(self) -> bool:
        return self.async_wiki.is_logged_in

    @property
    def username(self) -> str:
        return self.async_wiki.username

    ##################################################################################################
    ####################################### R E Q U E S T S ##########################################
    ##################################################################################################

    def request(self, params: Mapping, method: str = "GET") -> dict:
        """See `AsyncWiki.request()`"""
        return self._run(self.async_wiki.request(params, method))

    def get(self, params: Mapping) -> dict:
        return self.request(params, "GET")

    def post(self, params: Mapping) -> dict:
        return self.request(params, "POST")

    def post_with_token(self, params: Mapping, kind: str = "csrf") -> dict:
        """See `AsyncWiki.post_with_token()`"""
        return self._run(self.async_wiki.post_with_token(params, kind))

    def query_all(self, params: Mapping, max_results: int = None, entity_keys: Mapping = DEFAULT_ENTITY_KEYS, method: str = "GET") -> dict:
        """See `AsyncWiki.query_all()`"""
        return self._run(self.async_wiki.query_all(params, max_results, entity_keys, method))

    def pages(self, params: Mapping, method: str = "GET") -> Generator[dict, None, None]:
        """Performs a query and follows continuation, yielding each page as it arrives.  Stop iterating to abandon the query.

        Args:
            params (Mapping): The query parameters.
            method (str, optional): The HTTP method to use. Defaults to "GET".

        Yields:
            Generator[dict, None, None]: Each page of results, in the order the server returned them.
        """
        g = self.async_wiki.pages(params, method)
        try:
            while True:
                try:
                    page = self._run(g.__anext__())
                except StopAsyncIteration:
                    return

                yield page
        finally:
            self._run(g.aclose())

    ##################################################################################################
    ##################################### S E S S I O N ##############################################
    ##################################################################################################

    def login(self, username: str, password: str) -> None:
        """See `AsyncWiki.login()`"""
        self._run(self.async_wiki.login(username, password))

    def logout(self) -> None:
        self._run(self.async_wiki.logout())

    def set_credentials(self, credentials: Credentials) -> None:
        """See `AsyncWiki.set_credentials()`"""
        self.async_wiki.set_credentials(credentials)

    def load_cookies(self, username: str) -> bool:
        return self._run(self.async_wiki.load_cookies(username))

    def token(self, kind: str = "csrf") -> str:
        """See `AsyncWiki.token()`"""
        return self._run(self.async_wiki.token(kind))

    def invalidate_token(self, kind: str = None) -> None:
        self.async_wiki.invalidate_token(kind)

    def save_cookies(self) -> Path:
        return self.async_wiki.save_cookies()

    def clear_cookies(self) -> None:
        self.async_wiki.clear_cookies()

    ##################################################################################################
    ######################################## S I T E #################################################
    ##################################################################################################

    def load_site_info(self) -> SiteInfo:
        return self._run(self.async_wiki.load_site_info())

    def load_user_info(self) -> User:
        return self._run(self.async_wiki.load_user_info())

    def sparql_query(self, query: str) -> dict:
        """See `AsyncWiki.sparql_query()`"""
        return self._run(self.async_wiki.sparql_query(query))

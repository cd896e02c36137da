"""Asynchronous client for a MediaWiki instance's API"""

import logging

from asyncio import sleep
from collections.abc import AsyncGenerator, Mapping
from pathlib import Path
from urllib.parse import urlparse

from requests import Response

from . import continuation
from .backoff import BackoffPolicy, Verdict
from .continuation import DEFAULT_ENTITY_KEYS, DEFAULT_MAX_PAGES
from .dwrap import SiteInfo, User
from .errors import ApiError, TransportError
from .oauth import sign
from .params import ParameterSet, make_params
from .session import Credentials, SessionManager, SessionState
from .transport import RequestsTransport
from .utils import is_edit_query, mine_for

DEFAULT_USER_AGENT = "pwapi"
DEFAULT_MAXLAG = 5

_SECRET_KEYS = frozenset({"lgpassword", "lgtoken", "password", "token"})

log = logging.getLogger(__name__)


def _redacted(params: ParameterSet) -> str:
    """Renders `params` as a canonical query string which is safe to log."""
    return params.merged({k: "REDACTED" for k in _SECRET_KEYS if k in params}).canonical()


class AsyncWiki:
    """Asynchronous interface to a MediaWiki instance's API.  Handles authentication, continuation, and backing off when the server is lagged.

    Not safe to share between concurrently running tasks: use one instance per task, or guard the instance with a lock.
    """

    def __init__(self, api_url: str = "https://en.wikipedia.org/w/api.php", credentials: Credentials = None, user_agent: str = DEFAULT_USER_AGENT, maxlag: int = DEFAULT_MAXLAG,
                 backoff: BackoffPolicy = None, transport: RequestsTransport = None, cookie_jar: Path = None, max_pages: int = DEFAULT_MAX_PAGES, edit_delay: float = None):
        """Initializer, creates a new AsyncWiki.  No requests are made until a method is called.

        Args:
            api_url (str, optional): The full url of the wiki's `api.php`. Defaults to "https://en.wikipedia.org/w/api.php".
            credentials (Credentials, optional): `OAuthCredentials` to sign every request with, `SessionCredentials` with the cookies of an existing session, or `None` to start out anonymous. Defaults to None.
            user_agent (str, optional): The `User-Agent` to identify as.  Wikimedia wikis require a descriptive one with contact information. Defaults to DEFAULT_USER_AGENT.
            maxlag (int, optional): The `maxlag` value (in seconds) sent with edits, unless the request already sets one.  Set `None` to disable. Defaults to DEFAULT_MAXLAG.
            backoff (BackoffPolicy, optional): The retry policy for lagged servers and failed connections.  Uses the `BackoffPolicy` defaults if not set. Defaults to None.
            transport (RequestsTransport, optional): The transport to send requests with.  A new `RequestsTransport` is created if not set. Defaults to None.
            cookie_jar (Path, optional): The directory to save/read cookies to/from.  Set `None` to disable. Defaults to None.
            max_pages (int, optional): The maximum number of pages to fetch when following query continuation. Defaults to DEFAULT_MAX_PAGES.
            edit_delay (float, optional): The number of seconds to wait after each edit.  Set `None` to disable. Defaults to None.
        """
        self.endpoint: str = api_url
        self.host: str = urlparse(api_url).hostname
        self.transport: RequestsTransport = transport or RequestsTransport()
        self.user_agent: str = user_agent
        self.maxlag: int = maxlag
        self.backoff: BackoffPolicy = backoff or BackoffPolicy()
        self.max_pages: int = max_pages
        self.edit_delay: float = edit_delay
        self.site_info: SiteInfo = None

        self.session = SessionManager(self, SessionState(self.transport.cookies), cookie_jar)
        self.session.set_credentials(credentials)

    def __repr__(self) -> str:
        """Generate a str representation of this AsyncWiki object.  Useful for logging.

        Returns:
            str: A str representation of this AsyncWiki object.
        """
        return f"[{self.session.state.username or '<Anonymous>'} @ {self.host}]"

    async def __aenter__(self) -> "AsyncWiki":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        """Releases resources used by the transport"""
        self.transport.close()

    ##################################################################################################
    ####################################### R E Q U E S T S ##########################################
    ##################################################################################################

    @staticmethod
    def _read_json(response: Response) -> dict:
        """Reads the json body of a response, treating server-side failures as transport errors.

        Args:
            response (Response): The response to read.

        Raises:
            TransportError: If the status code indicates failure (transient for 5xx) or the body is not a json object.

        Returns:
            dict: The json body of `response`.
        """
        if (status := response.status_code) >= 500:
            raise TransportError(f"Server error (HTTP {status})", transient=True, status=status)
        if status >= 400:
            raise TransportError(f"Request rejected (HTTP {status})", status=status)

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(f"Server did not respond with json (HTTP {status})", status=status) from e

        if not isinstance(body, dict):
            raise TransportError(f"Server responded with a json {type(body).__name__} instead of an object (HTTP {status})", status=status)

        return body

    async def _send(self, method: str, pl: ParameterSet) -> dict:
        """Sends one request, signing it first if OAuth credentials are in use.

        Args:
            method (str): The HTTP method to use.
            pl (ParameterSet): The complete parameters to send.

        Returns:
            dict: The json response from the server.
        """
        headers = {"User-Agent": self.user_agent}
        if oauth := self.session.state.oauth:
            headers["Authorization"] = sign(oauth, method, self.endpoint, pl)

        log.debug("%s: %s with params: %s", self, method, _redacted(pl))

        return self._read_json(await self.transport.send(method, self.endpoint, pl, headers))

    async def request(self, params: Mapping, method: str = "GET") -> dict:
        """Performs a request against the API and returns the response.  Requests rejected because of replication lag and requests that failed to connect are retried according to `self.backoff`.

        Args:
            params (Mapping): The parameters to send, including `action`.  `format=json` is always sent.
            method (str, optional): The HTTP method to use.  Use `POST` for anything that changes state or is large. Defaults to "GET".

        Raises:
            ApiError: If the server responded with an error, or was still lagged after the last retry.
            TransportError: If the server could not be reached, or responded with something that is not json.

        Returns:
            dict: The json response from the server.
        """
        method = method.upper()
        pl = make_params(pl=params)
        if self.maxlag is not None and "maxlag" not in pl and is_edit_query(pl, method):
            pl["maxlag"] = self.maxlag

        backoff = self.backoff.make()
        while True:
            try:
                response = await self._send(method, pl)
            except TransportError as e:
                decision = backoff.decide(error=e)
            else:
                decision = backoff.decide(response)

            if decision.verdict is Verdict.PROCEED:
                break
            if decision.verdict is Verdict.ABORT:
                raise decision.error

            log.warning("%s: Request for '%s' must be retried, sleeping %.1fs...", self, pl.get("action"), decision.delay)
            await sleep(decision.delay)

        if self.edit_delay and is_edit_query(pl, method):
            await sleep(self.edit_delay)

        return response

    async def get(self, params: Mapping) -> dict:
        """Shorthand for `request(params, "GET")`"""
        return await self.request(params, "GET")

    async def post(self, params: Mapping) -> dict:
        """Shorthand for `request(params, "POST")`"""
        return await self.request(params, "POST")

    async def post_with_token(self, params: Mapping, kind: str = "csrf") -> dict:
        """POSTs a request carrying a token.  If the server rejects the token, a new one is fetched and the request is retried once.

        Args:
            params (Mapping): The parameters to send, excluding the token.
            kind (str, optional): The kind of token to attach. Defaults to "csrf".

        Raises:
            ApiError: If the server responded with an error, including a second `badtoken`.

        Returns:
            dict: The json response from the server.
        """
        for attempt in range(2):
            try:
                return await self.post({**params, "token": await self.token(kind)})
            except ApiError as e:
                if not e.is_bad_token or attempt:
                    raise

                log.warning("%s: The server rejected our %s token, fetching a new one and retrying", self, kind)
                self.invalidate_token(kind)

    ##################################################################################################
    ################################## C O N T I N U A T I O N #######################################
    ##################################################################################################

    def _executor(self, method: str) -> continuation.Executor:
        async def execute(pl: ParameterSet) -> dict:
            return await self.request(pl, method)

        return execute

    async def query_all(self, params: Mapping, max_results: int = None, entity_keys: Mapping = DEFAULT_ENTITY_KEYS, method: str = "GET") -> dict:
        """Performs a query and follows continuation until the server has returned everything, merging all pages into one result.

        Args:
            params (Mapping): The query parameters.  `action=query` is filled in if `action` is not set.
            max_results (int, optional): Stop once at least this many results have been fetched.  Set `None` to fetch everything. Defaults to None.
            entity_keys (Mapping, optional): Maps names of lists holding entity objects to their identity fields, see `continuation.merge()`. Defaults to DEFAULT_ENTITY_KEYS.
            method (str, optional): The HTTP method to use. Defaults to "GET".

        Raises:
            ApiError: If any page failed.  No partial result is returned.
            ContinuationLimitExceeded: If the server still requested continuation after `self.max_pages` pages.

        Returns:
            dict: The merged result.
        """
        return await continuation.query_all(self._executor(method), ParameterSet({"action": "query"}).merged(params), self.max_pages, max_results, entity_keys)

    async def pages(self, params: Mapping, method: str = "GET") -> AsyncGenerator[dict, None]:
        """Performs a query and follows continuation, yielding each page as it arrives.  Stop iterating to abandon the query.

        Args:
            params (Mapping): The query parameters.  `action=query` is filled in if `action` is not set.
            method (str, optional): The HTTP method to use. Defaults to "GET".

        Yields:
            AsyncGenerator[dict, None]: Each page of results, in the order the server returned them.
        """
        g = continuation.iter_pages(self._executor(method), ParameterSet({"action": "query"}).merged(params), self.max_pages)
        try:
            async for page in g:
                yield page
        finally:
            await g.aclose()

    ##################################################################################################
    ##################################### S E S S I O N ##############################################
    ##################################################################################################

    @property
    def is_logged_in(self) -> bool:
        return self.session.is_logged_in

    @property
    def username(self) -> str:
        return self.session.state.username

    def set_credentials(self, credentials: Credentials) -> None:
        """Switches to different credentials.  See `SessionManager.set_credentials()`."""
        self.session.set_credentials(credentials)

    async def login(self, username: str, password: str) -> None:
        """Logs in with a username and password.  See `SessionManager.login()`."""
        await self.session.login(username, password)

    async def logout(self) -> None:
        """Ends the current session.  See `SessionManager.logout()`."""
        await self.session.logout()

    async def token(self, kind: str = "csrf") -> str:
        """Gets a (possibly cached) token.  See `SessionManager.token()`."""
        return await self.session.token(kind)

    def invalidate_token(self, kind: str = None) -> None:
        """Drops a cached token.  See `SessionManager.invalidate()`."""
        self.session.invalidate(kind)

    async def load_cookies(self, username: str) -> bool:
        """Loads and validates saved cookies.  See `SessionManager.load_cookies()`."""
        return await self.session.load_cookies(username)

    def save_cookies(self) -> Path:
        """Saves the cookies of the current session.  See `SessionManager.save_cookies()`."""
        return self.session.save_cookies()

    def clear_cookies(self) -> None:
        """Deletes saved cookies.  See `SessionManager.clear_cookies()`."""
        self.session.clear_cookies()

    ##################################################################################################
    ######################################## S I T E #################################################
    ##################################################################################################

    async def load_site_info(self) -> SiteInfo:
        """Fetches general information and namespace data from the wiki and caches it in `self.site_info`.

        Returns:
            SiteInfo: The site info.
        """
        log.debug("%s: Fetching site info...", self)
        self.site_info = SiteInfo(await self.get({"action": "query", "meta": "siteinfo", "siprop": "general|namespaces|namespacealiases"}))
        return self.site_info

    async def load_user_info(self) -> User:
        """Asks the server who this client is acting as.

        Returns:
            User: The current user.  Anonymous users have an id of 0.
        """
        return User(mine_for(await self.get({"action": "query", "meta": "userinfo", "uiprop": "groups|rights"}), "query", "userinfo") or {})

    async def sparql_query(self, query: str) -> dict:
        """Runs a query against the SPARQL endpoint of a Wikibase installation (e.g. the Wikidata Query Service).

        Args:
            query (str): The SPARQL query.

        Raises:
            ValueError: If the wiki does not advertise a SPARQL endpoint.
            TransportError: If the endpoint could not be reached or did not respond with json.

        Returns:
            dict: The json results.
        """
        if not self.site_info:
            await self.load_site_info()
        if not (endpoint := self.site_info.sparql_endpoint):
            raise ValueError(f"{self}: this wiki does not advertise a SPARQL endpoint")

        log.debug("%s: Running SPARQL query against %s", self, endpoint)

        return self._read_json(await self.transport.send("POST", endpoint, {"query": query, "format": "json"}, {"User-Agent": self.user_agent}))

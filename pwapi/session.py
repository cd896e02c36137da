"""Session state and the login and token handshakes that mutate it"""
from __future__ import annotations

import logging
import pickle

from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from requests.cookies import RequestsCookieJar

from .errors import AuthError, LoginRejected, PWApiError, TokenUnavailable
from .oauth import OAuthCredentials
from .utils import mine_for, read_error

if TYPE_CHECKING:
    from .async_wiki import AsyncWiki

ANON_TOKEN = "+\\"

log = logging.getLogger(__name__)


class SessionCredentials:
    """Cookie-based credentials, established by logging in or by loading saved cookies"""

    def __init__(self, cookies: RequestsCookieJar, username: str = None):
        self.cookies = cookies
        self.username = username

    def __repr__(self) -> str:
        return f"SessionCredentials(username={self.username!r}, cookies={len(self.cookies)})"


Credentials = Optional[Union[SessionCredentials, OAuthCredentials]]


class SessionState:
    """Everything a client knows about who it is: credentials, cookies, cached tokens and the logged-in user.  Only a SessionManager modifies this."""

    def __init__(self, cookies: RequestsCookieJar, credentials: Credentials = None):
        self.cookies = cookies
        self.credentials: Credentials = credentials
        self.tokens: dict[str, tuple[str, tuple]] = {}
        self.username: str = None
        self.user_id: int = None
        self.epoch: int = 0

    @property
    def identity(self) -> tuple:
        """Identifies the session tokens are issued under.  Changes on every login, logout, and change of credentials."""
        return self.epoch, self.username

    @property
    def oauth(self) -> Optional[OAuthCredentials]:
        return self.credentials if isinstance(self.credentials, OAuthCredentials) else None

    def reset(self, credentials: Credentials = None, username: str = None, user_id: int = None) -> None:
        """Starts a new session identity, dropping every cached token.

        Args:
            credentials (Credentials, optional): The credentials of the new session. Defaults to None.
            username (str, optional): The user the new session acts as. Defaults to None.
            user_id (int, optional): The id of the user the new session acts as. Defaults to None.
        """
        self.credentials = credentials
        self.username = username
        self.user_id = user_id
        self.tokens.clear()
        self.epoch += 1


class SessionManager:
    """Performs the login handshake and fetches and caches tokens for a client"""

    def __init__(self, wiki: AsyncWiki, state: SessionState, cookie_jar: Path = None):
        """Initializer, creates a new SessionManager.

        Args:
            wiki (AsyncWiki): The client to send requests with.
            state (SessionState): The state this SessionManager owns.
            cookie_jar (Path, optional): The directory to save/read cookies to/from.  Set `None` to disable. Defaults to None.
        """
        self.wiki = wiki
        self.state = state
        self.cookie_jar = cookie_jar

    @property
    def is_logged_in(self) -> bool:
        return isinstance(self.state.credentials, SessionCredentials) and bool(self.state.username)

    def set_credentials(self, credentials: Credentials) -> None:
        """Switches the client to different credentials.  Tokens issued under the previous credentials are dropped.

        Args:
            credentials (Credentials): The credentials to use from now on, or `None` for anonymous access.
        """
        if isinstance(credentials, SessionCredentials):
            self.state.cookies.update(credentials.cookies)
            credentials.cookies = self.state.cookies

        self.state.reset(credentials, getattr(credentials, "username", None))

    ##################################################################################################
    ########################################## T O K E N S ###########################################
    ##################################################################################################

    async def _fetch_token(self, kind: str) -> str:
        """Fetches a token from the server, bypassing the cache.

        Args:
            kind (str): The kind of token to fetch (e.g. `csrf`, `login`, `watch`).

        Raises:
            TokenUnavailable: If the server did not return a token of this kind.

        Returns:
            str: The token.
        """
        log.debug("%s: Fetching %s token...", self.wiki, kind)

        if not (token := mine_for(await self.wiki.get({"action": "query", "meta": "tokens", "type": kind}), "query", "tokens", f"{kind}token")):
            raise TokenUnavailable(kind)

        return token

    async def token(self, kind: str = "csrf") -> str:
        """Gets a token, fetching it from the server only if there is no cached token issued under the current session.

        Args:
            kind (str, optional): The kind of token to get (e.g. `csrf`, `login`, `watch`). Defaults to "csrf".

        Raises:
            TokenUnavailable: If the server did not return a token of this kind.

        Returns:
            str: The token.
        """
        if (cached := self.state.tokens.get(kind)) and cached[1] == self.state.identity:
            log.debug("%s: Using cached %s token", self.wiki, kind)
            return cached[0]

        identity = self.state.identity
        token = await self._fetch_token(kind)
        self.state.tokens[kind] = (token, identity)

        return token

    def invalidate(self, kind: str = None) -> None:
        """Drops a cached token, e.g. after the server rejected it with `badtoken`.

        Args:
            kind (str, optional): The kind of token to drop.  Set `None` to drop every cached token. Defaults to None.
        """
        if kind is None:
            self.state.tokens.clear()
        else:
            self.state.tokens.pop(kind, None)

    ##################################################################################################
    ########################################### L O G I N ############################################
    ##################################################################################################

    async def login(self, username: str, password: str) -> None:
        """Logs in with a username and password (or a bot password).  If successful, all future requests will be made as this user.

        Args:
            username (str): The username to login with
            password (str): The password to login with

        Raises:
            AuthError: If OAuth credentials are in use, since OAuth sessions cannot log in with a password.
            LoginRejected: If the server refused the login.
        """
        if self.state.oauth:
            raise AuthError("Cannot log in with a password while using OAuth credentials")
        if not (username and password):
            raise LoginRejected("username and password must not be empty")

        log.info("%s: Attempting login for %s", self.wiki, username)

        self.invalidate("login")
        token = await self.token("login")

        for attempt in range(2):
            response = await self.wiki.post({"action": "login", "lgname": username, "lgpassword": password, "lgtoken": token})
            status, reason = read_error("login", response)

            if status == "Success":
                name = mine_for(response, "login", "lgusername") or username
                self.state.reset(SessionCredentials(self.state.cookies, name), name, mine_for(response, "login", "lguserid"))
                log.info("%s: Successfully logged in as '%s'", self.wiki, self.state.username)
                return

            if status != "NeedToken" or attempt:
                break

            log.debug("%s: Server wants a fresh login token, retrying once", self.wiki)
            self.invalidate("login")
            token = mine_for(response, "login", "token") or await self.token("login")

        reason = reason or status
        log.error("%s: Failed to log in as '%s': %s", self.wiki, username, reason)
        raise LoginRejected(reason, status)

    async def logout(self) -> None:
        """Ends the current session on the server and forgets the cookies, tokens, and user of this client.  Local state is dropped even if the server refuses.

        Raises:
            ApiError: If the server refused to end the session.
        """
        if not self.is_logged_in:
            log.warning("%s: not logged in, nothing to log out of", self.wiki)
            return

        try:
            await self.wiki.post({"action": "logout", "token": await self.token()})
        finally:
            self._forget()

        log.info("%s: Logged out", self.wiki)

    def _forget(self) -> None:
        """Drops the cookies, tokens, and user of the current session, locally only."""
        self.state.cookies.clear()
        self.state.reset()

    ##################################################################################################
    ######################################## C O O K I E S ###########################################
    ##################################################################################################

    def _cookie_path(self, username: str = None) -> Optional[Path]:
        """Determines the cookie save path and returns that.

        Args:
            username (str, optional): Force a search for this this username. If unset, then the logged in user will be used as the default.  Defaults to None.

        Returns:
            Optional[Path]: The file `Path` to save the cookies of this session to.  If no cookie_jar or username was set, then return `None`.
        """
        return (self.cookie_jar / f"{self.wiki.host}_{username}.pickle") if self.cookie_jar and (username := username or self.state.username) else None

    async def load_cookies(self, username: str) -> bool:
        """Load saved cookies of `username` and verify with the server that they still represent a logged in session.

        Args:
            username (str): The user whose cookies should be loaded.

        Raises:
            PWApiError: If the cookies could not be checked with the server.  They are discarded.

        Returns:
            bool: `True` if the cookies were loaded and are still valid.
        """
        if not (cookie_path := self._cookie_path(username)) or not cookie_path.is_file():
            return False

        with cookie_path.open("rb") as f:
            self.set_credentials(SessionCredentials(pickle.load(f), username))

        try:
            valid = await self.token() != ANON_TOKEN
        except PWApiError:
            self._forget()
            raise

        if not valid:
            log.warning("%s: Cookies loaded from '%s' are invalid!  Skipping cookies...", self.wiki, cookie_path)
            self._forget()
            return False

        log.debug("%s: successfully loaded cookies from '%s'", self.wiki, cookie_path)

        return True

    def save_cookies(self) -> Path:
        """Write the cookies of this session to disk, so they can be used in the future.

        Raises:
            ValueError: If no directory for cookies was configured, or if not logged in.

        Returns:
            Path: The file the cookies were written to.
        """
        if not self.is_logged_in:
            raise ValueError("Not logged in, no cookies to save")
        if not (p := self._cookie_path()):
            raise ValueError("No cookie path is specified, unable to save cookies")

        log.info("%s: Saving cookies to '%s'", self.wiki, p)

        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("wb") as f:
            pickle.dump(self.state.cookies, f)

        return p

    def clear_cookies(self) -> None:
        """Deletes any saved cookies of the logged in user from disk."""
        if p := self._cookie_path():
            p.unlink(True)
            log.info("%s: Removed cookies saved at '%s'", self.wiki, p)

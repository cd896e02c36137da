from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import IsolatedAsyncioTestCase

from pwapi.errors import ApiError, AuthError, LoginRejected, TokenUnavailable, TransportError
from pwapi.oauth import OAuthCredentials
from pwapi.session import SessionCredentials

from .base import file_to_json, new_wiki, WikiTestCase

_CSRF = "1f6e0a2b9c8d7e6f5a4b3c2d1e0f9a8b+\\"
_CSRF_2 = "aa11bb22cc33dd44ee55ff6677889900+\\"


class TestTokens(WikiTestCase):
    """Tests fetching and caching tokens"""

    async def test_cached(self):
        self.transport.queue(file_to_json("csrf_token"))

        self.assertEqual(_CSRF, await self.wiki.token())
        self.assertEqual(_CSRF, await self.wiki.token("csrf"))
        self.assertEqual(1, len(self.transport.sent))

        self.assertDictEqual({"format": "json", "formatversion": "2", "action": "query", "meta": "tokens", "type": "csrf"}, self.transport.sent_params[0])

    async def test_invalidate(self):
        self.transport.queue(file_to_json("csrf_token"), file_to_json("csrf_token_2"))

        self.assertEqual(_CSRF, await self.wiki.token())
        self.wiki.invalidate_token("csrf")
        self.assertEqual(_CSRF_2, await self.wiki.token())
        self.assertEqual(2, len(self.transport.sent))

    async def test_new_credentials(self):
        self.transport.queue(file_to_json("csrf_token"), file_to_json("csrf_token_2"))

        self.assertEqual(_CSRF, await self.wiki.token())
        self.wiki.set_credentials(SessionCredentials(self.transport.cookies, "FSock"))
        self.assertEqual(_CSRF_2, await self.wiki.token())

    async def test_unavailable(self):
        self.transport.queue(file_to_json("bad_token_type"))

        with self.assertRaises(TokenUnavailable) as cm:
            await self.wiki.token("notarealtokentype")

        self.assertEqual("notarealtokentype", cm.exception.kind)


class TestLogin(WikiTestCase):
    """Tests the login handshake"""

    async def test_login(self):
        self.transport.queue(file_to_json("login_token"), file_to_json("login"))
        await self.wiki.login("FSock", "not long enough")

        self.assertTrue(self.wiki.is_logged_in)
        self.assertEqual("FSock", self.wiki.username)
        self.assertEqual(1043, self.wiki.session.state.user_id)
        self.assertEqual("[FSock @ test.wikipedia.org]", repr(self.wiki))

        method, _, params, _ = self.transport.sent[1]
        self.assertEqual("POST", method)
        self.assertEqual("login", params["action"])
        self.assertEqual("b5780b6e2f27e20b450921d9461010b4+\\", params["lgtoken"])
        self.assertNotIn("maxlag", params)

    async def test_login_drops_tokens(self):
        self.transport.queue(file_to_json("csrf_token"), file_to_json("login_token"), file_to_json("login"), file_to_json("csrf_token_2"))

        self.assertEqual(_CSRF, await self.wiki.token())
        await self.wiki.login("FSock", "not long enough")
        self.assertEqual(_CSRF_2, await self.wiki.token())

    async def test_need_token(self):
        self.transport.queue(file_to_json("login_token"), file_to_json("login_needtoken"), file_to_json("login"))
        await self.wiki.login("FSock", "not long enough")

        self.assertTrue(self.wiki.is_logged_in)
        self.assertEqual(3, len(self.transport.sent))
        self.assertEqual("9e1a3b4c5d6e7f80112233445566778a+\\", self.transport.sent_params[2]["lgtoken"])

    async def test_need_token_twice(self):
        self.transport.queue(file_to_json("login_token"), file_to_json("login_needtoken"), file_to_json("login_needtoken"))

        with self.assertRaises(LoginRejected) as cm:
            await self.wiki.login("FSock", "not long enough")

        self.assertEqual("NeedToken", cm.exception.status)

    async def test_rejected(self):
        self.transport.queue(file_to_json("login_token"), file_to_json("login_failed"))

        with self.assertRaises(LoginRejected) as cm:
            await self.wiki.login("FSock", "wrong")

        self.assertEqual("Failed", cm.exception.status)
        self.assertIn("Incorrect username or password", cm.exception.reason)
        self.assertFalse(self.wiki.is_logged_in)
        self.assertIsNone(self.wiki.username)

    async def test_empty(self):
        with self.assertRaises(LoginRejected):
            await self.wiki.login("FSock", "")

        self.assertFalse(self.transport.sent)

    async def test_oauth(self):
        self.wiki.set_credentials(OAuthCredentials("ck", "cs", "tk", "ts"))

        with self.assertRaises(AuthError):
            await self.wiki.login("FSock", "not long enough")

        self.assertFalse(self.transport.sent)

    async def test_logout(self):
        self.transport.queue(file_to_json("login_token"), file_to_json("login"), file_to_json("csrf_token"), file_to_json("logout"))
        await self.wiki.login("FSock", "not long enough")
        await self.wiki.logout()

        self.assertFalse(self.wiki.is_logged_in)
        self.assertIsNone(self.wiki.username)
        self.assertDictEqual({}, self.wiki.session.state.tokens)

        method, _, params, _ = self.transport.sent[-1]
        self.assertEqual("POST", method)
        self.assertEqual("logout", params["action"])
        self.assertEqual(_CSRF, params["token"])

    async def test_logout_refused(self):
        self.transport.queue(file_to_json("login_token"), file_to_json("login"), file_to_json("csrf_token"), file_to_json("badtoken"))
        await self.wiki.login("FSock", "not long enough")

        with self.assertRaises(ApiError):
            await self.wiki.logout()

        self.assertFalse(self.wiki.is_logged_in)
        self.assertIsNone(self.wiki.username)
        self.assertFalse(self.transport.cookies)

    async def test_logout_anonymous(self):
        await self.wiki.logout()
        self.assertFalse(self.transport.sent)


class TestCookies(IsolatedAsyncioTestCase):
    """Tests saving and loading the cookies of a session"""

    async def asyncSetUp(self) -> None:
        self.tmp = TemporaryDirectory()
        self.cookie_jar = Path(self.tmp.name)

    async def asyncTearDown(self) -> None:
        self.tmp.cleanup()

    async def _login(self):
        wiki = new_wiki(file_to_json("login_token"), file_to_json("login"), cookie_jar=self.cookie_jar)
        await wiki.login("FSock", "not long enough")
        wiki.transport.cookies.set("testwikiSession", "abc123", domain="test.wikipedia.org")

        return wiki

    async def test_save_load(self):
        p = (await self._login()).save_cookies()

        self.assertEqual(self.cookie_jar / "test.wikipedia.org_FSock.pickle", p)
        self.assertTrue(p.is_file())

        wiki = new_wiki(file_to_json("csrf_token"), cookie_jar=self.cookie_jar)
        self.assertTrue(await wiki.load_cookies("FSock"))
        self.assertTrue(wiki.is_logged_in)
        self.assertEqual("FSock", wiki.username)
        self.assertEqual("abc123", wiki.transport.cookies.get("testwikiSession"))

        # token fetched while validating the cookies is reused
        self.assertEqual(_CSRF, await wiki.token())
        self.assertEqual(1, len(wiki.transport.sent))

    async def test_load_expired(self):
        (await self._login()).save_cookies()

        wiki = new_wiki(file_to_json("anon_token"), cookie_jar=self.cookie_jar)
        with self.assertLogs("pwapi.session", "WARNING"):
            self.assertFalse(await wiki.load_cookies("FSock"))

        self.assertFalse(wiki.is_logged_in)
        self.assertFalse(wiki.transport.cookies)

    async def test_load_unreachable(self):
        (await self._login()).save_cookies()

        wiki = new_wiki(TransportError("Could not reach test.wikipedia.org"), cookie_jar=self.cookie_jar)
        with self.assertRaises(TransportError):
            await wiki.load_cookies("FSock")

        self.assertFalse(wiki.is_logged_in)
        self.assertIsNone(wiki.username)
        self.assertFalse(wiki.transport.cookies)

    async def test_load_missing(self):
        wiki = new_wiki(cookie_jar=self.cookie_jar)
        self.assertFalse(await wiki.load_cookies("Fastily"))
        self.assertFalse(new_wiki().session.cookie_jar)

    async def test_save_errors(self):
        with self.assertRaises(ValueError):
            new_wiki(cookie_jar=self.cookie_jar).save_cookies()

        wiki = new_wiki(file_to_json("login_token"), file_to_json("login"))
        await wiki.login("FSock", "not long enough")
        with self.assertRaises(ValueError):
            wiki.save_cookies()

    async def test_clear(self):
        wiki = await self._login()
        p = wiki.save_cookies()

        wiki.clear_cookies()
        self.assertFalse(p.exists())

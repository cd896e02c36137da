from unittest import IsolatedAsyncioTestCase, mock

import requests

from pwapi.errors import TransportError
from pwapi.transport import RequestsTransport

from .base import API_URL, make_response


class TestRequestsTransport(IsolatedAsyncioTestCase):
    """Tests sending requests with a requests Session"""

    def setUp(self) -> None:
        self.transport = RequestsTransport(timeout=5)

    def tearDown(self) -> None:
        self.transport.close()

    @mock.patch("requests.Session.request")
    async def test_send(self, request: mock.Mock):
        request.return_value = make_response({"batchcomplete": True})

        await self.transport.send("GET", API_URL, {"action": "query"}, {"User-Agent": "pwapi"})
        request.assert_called_with("GET", API_URL, params={"action": "query"}, headers={"User-Agent": "pwapi"}, timeout=5)

        await self.transport.send("POST", API_URL, {"action": "edit"})
        request.assert_called_with("POST", API_URL, data={"action": "edit"}, headers={}, timeout=5)

    @mock.patch("requests.Session.request")
    async def test_errors(self, request: mock.Mock):
        request.side_effect = requests.ConnectionError("connection reset")
        with self.assertRaises(TransportError) as cm:
            await self.transport.send("GET", API_URL, {"action": "query"})
        self.assertTrue(cm.exception.transient)

        request.side_effect = requests.Timeout("read timed out")
        with self.assertRaises(TransportError) as cm:
            await self.transport.send("GET", API_URL, {"action": "query"})
        self.assertTrue(cm.exception.transient)

        request.side_effect = requests.TooManyRedirects("too many redirects")
        with self.assertRaises(TransportError) as cm:
            await self.transport.send("GET", API_URL, {"action": "query"})
        self.assertFalse(cm.exception.transient)

    def test_cookies(self):
        self.assertIs(self.transport.session.cookies, self.transport.cookies)

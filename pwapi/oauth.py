"""OAuth 1.0a request signing (HMAC-SHA1) for owner-only consumers"""

import logging
import unicodedata

from collections.abc import Mapping
from urllib.parse import urlencode

from oauthlib.oauth1.rfc5849 import CONTENT_TYPE_FORM_URLENCODED
from oauthlib.oauth1 import SIGNATURE_HMAC_SHA1, SIGNATURE_TYPE_AUTH_HEADER, Client

from .errors import SigningError

log = logging.getLogger(__name__)

_ALLOWED_CONTROL = frozenset("\t\n\r")


class OAuthCredentials:
    """The consumer and access token pairs of an OAuth 1.0a consumer"""

    def __init__(self, consumer_key: str, consumer_secret: str, token_key: str = None, token_secret: str = None):
        """Initializer, creates a new OAuthCredentials.

        Args:
            consumer_key (str): The consumer key (a.k.a. consumer token)
            consumer_secret (str): The consumer secret
            token_key (str, optional): The access token.  Defaults to None.
            token_secret (str, optional): The access secret.  Defaults to None.
        """
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.token_key = token_key
        self.token_secret = token_secret

    def __repr__(self) -> str:
        return f"OAuthCredentials(consumer_key={self.consumer_key!r}, token_key={self.token_key!r})"

    @classmethod
    def from_json(cls, j: dict) -> "OAuthCredentials":
        """Creates OAuthCredentials from the json object that tools on Toolforge serialize OAuth sessions to (i.e. the `gConsumerKey`, `gConsumerSecret`, `gTokenKey` and `gTokenSecret` keys).

        Args:
            j (dict): The json object to read.

        Raises:
            ValueError: If `j` is missing the consumer key or secret.

        Returns:
            OAuthCredentials: The credentials found in `j`.
        """
        if not (j.get("gConsumerKey") and j.get("gConsumerSecret")):
            raise ValueError("OAuth json is missing 'gConsumerKey' and/or 'gConsumerSecret'")

        return cls(j["gConsumerKey"], j["gConsumerSecret"], j.get("gTokenKey"), j.get("gTokenSecret"))


def _check_signable(name: str, value: str) -> None:
    """Ensures `value` can be represented in a signature base string.

    Raises:
        SigningError: If `value` is not a `str`, is not valid UTF-8, or contains control characters other than tabs and line breaks.
    """
    if not isinstance(value, str):
        raise SigningError(f"'{name}' must be a str, got {type(value).__name__}")

    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise SigningError(f"'{name}' is not valid UTF-8") from e

    if any(c not in _ALLOWED_CONTROL and unicodedata.category(c) == "Cc" for c in value):
        raise SigningError(f"'{name}' contains a control character")


def sign(credentials: OAuthCredentials, method: str, url: str, params: Mapping, nonce: str = None, timestamp: str = None) -> str:
    """Creates the value of an `Authorization` header for a request.  The signature covers the OAuth parameters plus every entry in `params`.

    Args:
        credentials (OAuthCredentials): The credentials to sign with.
        method (str): The HTTP method of the request (`GET` or `POST`).
        url (str): The url the request will be sent to, without the parameters in `params`.
        params (Mapping): The request's parameters.  These are sent as the query string for `GET` and as a form body otherwise.
        nonce (str, optional): Fixes the nonce instead of generating a random one.  Defaults to None.
        timestamp (str, optional): Fixes the unix timestamp instead of using the current time.  Defaults to None.

    Raises:
        SigningError: If a parameter or credential cannot be signed.

    Returns:
        str: The `Authorization` header value, starting with `OAuth `.
    """
    for k, v in params.items():
        _check_signable(k, k)
        _check_signable(k, v)

    for k in ("consumer_key", "consumer_secret"):
        _check_signable(k, getattr(credentials, k))

    method = method.upper()
    client = Client(credentials.consumer_key, client_secret=credentials.consumer_secret, resource_owner_key=credentials.token_key,
                    resource_owner_secret=credentials.token_secret, signature_method=SIGNATURE_HMAC_SHA1,
                    signature_type=SIGNATURE_TYPE_AUTH_HEADER, nonce=nonce, timestamp=None if timestamp is None else str(timestamp))

    query = urlencode(list(params.items()))
    try:
        if method in ("GET", "HEAD"):
            _, headers, _ = client.sign(f"{url}{'&' if '?' in url else '?'}{query}" if query else url, method)
        else:
            _, headers, _ = client.sign(url, method, query, {"Content-Type": CONTENT_TYPE_FORM_URLENCODED})
    except ValueError as e:
        raise SigningError(f"Unable to sign {method} request to {url}: {e}") from e

    log.debug("Signed %s request to %s with consumer %s", method, url, credentials.consumer_key)

    return headers["Authorization"]

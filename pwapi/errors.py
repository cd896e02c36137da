"""Exceptions raised by pwapi"""

from typing import Optional

__all__ = ["PWApiError", "TransportError", "ApiError", "AuthError", "LoginRejected", "TokenUnavailable", "ContinuationLimitExceeded", "SigningError"]


class PWApiError(Exception):
    """Base class for every error raised by pwapi"""


class TransportError(PWApiError):
    """Raised when the server could not be reached or did not send back a usable response"""

    def __init__(self, message: str, transient: bool = False, status: Optional[int] = None):
        """Initializer, creates a new TransportError.

        Args:
            message (str): A description of what went wrong.
            transient (bool, optional): `True` if trying again later may succeed (e.g. timeouts, dropped connections, HTTP 5xx). Defaults to False.
            status (Optional[int], optional): The HTTP status code of the response, if there was one. Defaults to None.
        """
        super().__init__(message)
        self.transient = transient
        self.status = status


class ApiError(PWApiError):
    """Raised when the server reports an error for a request"""

    def __init__(self, code: str, message: str, response: dict = None):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.response = response or {}

    @classmethod
    def from_response(cls, response: dict) -> "ApiError":
        """Creates an ApiError from the `"error"` object of a response.

        Args:
            response (dict): The json response from the server.

        Returns:
            ApiError: The ApiError describing the error in `response`.
        """
        e = response.get("error") or {}
        return cls(e.get("code"), e.get("info", e.get("*", "")), response)

    @property
    def is_bad_token(self) -> bool:
        return self.code == "badtoken"

    @property
    def is_maxlag(self) -> bool:
        return self.code == "maxlag"


class AuthError(PWApiError):
    """Raised when authentication could not be established"""


class LoginRejected(AuthError):
    """Raised when the server refuses a login attempt"""

    def __init__(self, reason: str, status: str = None):
        super().__init__(f"Login rejected ({status}): {reason}" if status else f"Login rejected: {reason}")
        self.reason = reason
        self.status = status


class TokenUnavailable(AuthError):
    """Raised when the server does not hand out a token of the requested kind"""

    def __init__(self, kind: str):
        super().__init__(f"Could not retrieve a '{kind}' token")
        self.kind = kind


class ContinuationLimitExceeded(PWApiError):
    """Raised when a paginated query keeps asking to be continued after the maximum number of pages were fetched"""

    def __init__(self, pages: int, partial: dict):
        super().__init__(f"Server still requested continuation after {pages} pages")
        self.pages = pages
        self.partial = partial


class SigningError(PWApiError, ValueError):
    """Raised when a request cannot be signed with OAuth"""

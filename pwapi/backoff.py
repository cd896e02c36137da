"""Decides whether a request should be retried after the server asked us to slow down or the connection failed"""

import logging

from enum import Enum
from typing import NamedTuple, Optional

from .errors import ApiError, TransportError
from .utils import has_error, mine_for

log = logging.getLogger(__name__)


class Verdict(Enum):
    """The possible outcomes of inspecting a response"""
    PROCEED = "proceed"
    RETRY = "retry"
    ABORT = "abort"


class Decision(NamedTuple):
    """What the caller should do with the response it just got"""
    verdict: Verdict
    delay: float = 0.0
    error: Optional[Exception] = None

    @classmethod
    def proceed(cls) -> "Decision":
        return cls(Verdict.PROCEED)

    @classmethod
    def retry_after(cls, delay: float) -> "Decision":
        return cls(Verdict.RETRY, delay)

    @classmethod
    def abort(cls, error: Exception) -> "Decision":
        return cls(Verdict.ABORT, error=error)


class BackoffPolicy:
    """Retry limits and delays shared by every request made by a client.  Call `make()` to get a tracker for a single request."""

    def __init__(self, max_lag_retries: int = 5, lag_delay: float = 1.0, max_delay: float = 60.0, max_transport_retries: int = 3, transport_delay: float = 2.0):
        """Initializer, creates a new BackoffPolicy.

        Args:
            max_lag_retries (int, optional): The maximum number of times to retry a request rejected because of replication lag. Defaults to 5.
            lag_delay (float, optional): The initial delay (in seconds) after a maxlag error.  Doubles with each retry. Defaults to 1.0.
            max_delay (float, optional): The upper bound (in seconds) of the delay after a maxlag error. Defaults to 60.0.
            max_transport_retries (int, optional): The maximum number of times to retry a request after a transient connection failure. Defaults to 3.
            transport_delay (float, optional): The delay (in seconds) after the first connection failure.  Grows linearly with each retry. Defaults to 2.0.
        """
        self.max_lag_retries = max_lag_retries
        self.lag_delay = lag_delay
        self.max_delay = max_delay
        self.max_transport_retries = max_transport_retries
        self.transport_delay = transport_delay

    def make(self) -> "Backoff":
        """Creates a new Backoff for a single logical request.

        Returns:
            Backoff: A fresh tracker with no retries used.
        """
        return Backoff(self)


class Backoff:
    """Tracks the retries spent on a single logical request"""

    def __init__(self, policy: BackoffPolicy):
        self.policy = policy
        self.lag_retries = 0
        self.transport_retries = 0

    def _lag_delay(self, response: dict) -> float:
        """Computes the delay before the next maxlag retry.  The server-reported lag is honored if it exceeds the exponential delay.

        Args:
            response (dict): The maxlag error response.

        Returns:
            float: The number of seconds to wait.
        """
        try:
            lag = float(mine_for(response, "error", "lag") or 0)
        except (TypeError, ValueError):
            lag = 0

        return min(self.policy.max_delay, max(lag, self.policy.lag_delay * 2 ** self.lag_retries))

    def decide(self, response: dict = None, error: Exception = None) -> Decision:
        """Inspects the outcome of an attempt and decides what to do next.  Each `RETRY` verdict consumes one retry.

        Args:
            response (dict, optional): The json response from the server, if one was received. Defaults to None.
            error (Exception, optional): The error raised while sending the request, if any. Defaults to None.

        Returns:
            Decision: `PROCEED` if `response` is usable, `RETRY` with a delay if trying again may help, or `ABORT` with the error to raise.
        """
        if error is not None:
            if not isinstance(error, TransportError) or not error.transient:
                return Decision.abort(error)

            if self.transport_retries >= self.policy.max_transport_retries:
                log.error("Giving up after %d retries, connection still failing: %s", self.transport_retries, error)
                return Decision.abort(error)

            self.transport_retries += 1
            return Decision.retry_after(self.policy.transport_delay * self.transport_retries)

        if not has_error(response):
            return Decision.proceed()

        e = ApiError.from_response(response)
        if not e.is_maxlag:
            return Decision.abort(e)

        if self.lag_retries >= self.policy.max_lag_retries:
            log.error("Giving up after %d retries, server is still lagged: %s", self.lag_retries, e.message)
            return Decision.abort(e)

        delay = self._lag_delay(response)
        self.lag_retries += 1
        return Decision.retry_after(delay)

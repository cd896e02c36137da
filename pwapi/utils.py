"""Shared utilities and constants"""
import logging

from collections.abc import Mapping
from typing import Any

API_DEFAULTS = {"format": "json", "formatversion": "2"}

log = logging.getLogger(__name__)


def has_error(response: dict) -> bool:
    """Checks if a response from the server contains an error.

    Args:
        response (dict): The json response from the server.

    Returns:
        bool: True if the response contained an error.
    """
    return isinstance(response, Mapping) and "error" in response


def is_edit_query(params: Mapping, method: str) -> bool:
    """Determines if a request would change state on the server.  Edits are only ever made via `POST` and always carry a token.

    Args:
        params (Mapping): The parameters that will be sent.
        method (str): The HTTP method that will be used.

    Returns:
        bool: `True` if this is a state-changing request.
    """
    return method.upper() == "POST" and "token" in params


def mine_for(target: dict, *keys: str) -> Any:
    """Digs through nested json objects, following the keys named by `keys`.  Absent keys and non-object nodes along the way are reported as `None` rather than raised.

    Args:
        target (dict): The json object to dig through.
        keys (str): The keys to follow.

    Returns:
        Any: Whatever value is found at the end of following the specified keys.  `None` if nothing was found.
    """
    for k in keys:
        if not isinstance(target, Mapping) or k not in target:
            return None

        target = target[k]

    return target


def read_error(action: str, response: dict) -> tuple[str, str]:
    """Reads the error or result from an action response.  Useful for logging.

    Args:
        action (str): The type of action that was just performed.
        response (dict): The json response from the server

    Returns:
        tuple[str, str]: A tuple such that the first element is the status code and the second element is the error description.
    """
    if has_error(response):
        e = response["error"]
        return e.get("code"), e.get("info", e.get("*"))

    if isinstance(result := mine_for(response, action), Mapping):
        return result.get("result"), result.get("reason")

    log.warning("Unable to parse error which occurred while perfoming a '%s' action", action)
    log.debug(response)

    return (None,)*2

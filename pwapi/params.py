"""The parameter set, the unit of data every request is built from"""

from collections import UserDict
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote, urlencode

from .utils import API_DEFAULTS


def stringify(value: Any) -> str:
    """Converts a python value to the `str` form MediaWiki expects for a request parameter.

    Args:
        value (Any): The value to convert.  Iterables (other than `str`) are joined with `|`, MediaWiki's multi-value separator.

    Raises:
        TypeError: If `value` is binary data, which cannot be sent as a form value.

    Returns:
        str: `value` as a `str`.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1"
    if isinstance(value, (bytes, bytearray)):
        raise TypeError("Binary values are not supported as request parameters")
    if isinstance(value, Iterable) and not isinstance(value, Mapping):
        return "|".join(stringify(v) for v in value)

    return str(value)


class ParameterSet(UserDict):
    """Mapping of request field names to `str` values.  Keeps insertion order so the query string it produces is stable.

    Assigning `None` or `False` removes the key, since MediaWiki treats the mere presence of a flag as `True`.
    """

    def __setitem__(self, key: str, value: Any) -> None:
        if value is None or value is False:
            self.data.pop(str(key), None)
        else:
            self.data[str(key)] = stringify(value)

    def merged(self, *others: Mapping) -> "ParameterSet":
        """Creates a copy of this ParameterSet with `others` layered on top, in order.

        Returns:
            ParameterSet: A new ParameterSet.  This ParameterSet is not modified.
        """
        out = ParameterSet(self)
        for o in others:
            out.update(o or {})

        return out

    def canonical(self) -> str:
        """Renders this ParameterSet as a key-sorted, percent-encoded query string.

        Returns:
            str: The canonical query string.
        """
        return urlencode(sorted(self.data.items()), quote_via=quote)


def make_params(action: str = None, pl: Mapping = None) -> ParameterSet:
    """Convienence method to generate payload parameters.  Fills in useful details that should be submitted with every request.

    Args:
        action (str, optional): The action value (e.g. "query", "edit", "purge").  Set `None` to leave the `action` key in `pl` untouched. Defaults to None.
        pl (Mapping, optional): Additional parameters besides the defaults in `API_DEFAULTS` and the action parameter. Defaults to None.

    Returns:
        ParameterSet: A new ParameterSet with the parameters.  `format` is always `json`.
    """
    p = ParameterSet(API_DEFAULTS).merged(pl, {"format": "json"})
    if action:
        p["action"] = action

    return p

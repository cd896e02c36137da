"""Query continuation: follows the server's `continue` markers and merges the returned pages into a single result"""

import logging

from collections.abc import AsyncGenerator, Awaitable, Callable, Hashable, Mapping
from typing import Any, Optional

from .errors import ApiError, ContinuationLimitExceeded
from .params import ParameterSet, stringify
from .utils import has_error

DEFAULT_MAX_PAGES = 1000

DEFAULT_ENTITY_KEYS = {"pages": ("pageid", "title")}

log = logging.getLogger(__name__)

Executor = Callable[[ParameterSet], Awaitable[dict]]


def _identity(e: Any, fields: tuple[str, ...]) -> Optional[Hashable]:
    """Finds the identity of an entity object, which is the first of `fields` it carries.

    Args:
        e (Any): The list element to identify.
        fields (tuple[str, ...]): The candidate identity fields, in order of preference.

    Returns:
        Optional[Hashable]: A `(field, value)` tuple, or `None` if `e` has no identity.
    """
    if isinstance(e, Mapping):
        for f in fields:
            if isinstance(v := e.get(f), Hashable) and v is not None:
                return f, v


def _merge_entities(old: list, new: list, fields: tuple[str, ...], entity_keys: Mapping) -> list:
    """Merges two lists of entity objects by identity.  Entities seen before are merged into their existing element, everything else is appended in order.

    Args:
        old (list): The entities accumulated so far.
        new (list): The entities in the latest page.
        fields (tuple[str, ...]): The candidate identity fields.
        entity_keys (Mapping): Passed through to nested merges.

    Returns:
        list: A new list with the merged entities.
    """
    out = list(old)
    index = {i: pos for pos, e in enumerate(out) if (i := _identity(e, fields)) is not None}

    for e in new:
        if (i := _identity(e, fields)) is not None and i in index:
            out[index[i]] = merge(out[index[i]], e, entity_keys)
        else:
            if i is not None:
                index[i] = len(out)
            out.append(e)

    return out


def merge(old: Any, new: Any, entity_keys: Mapping = DEFAULT_ENTITY_KEYS) -> Any:
    """Merges a newly fetched page of results into the results accumulated so far.  Neither argument is modified.

    * Objects are merged key by key, so objects keyed by page/entity id (e.g. `"pages"` in `formatversion=1`) are merged per id.
    * Lists under a key named in `entity_keys` hold entity objects (e.g. `"pages"` in `formatversion=2`) and are merged per entity.
    * Any other lists are concatenated.
    * Otherwise the newer value wins.

    Args:
        old (Any): The accumulated result.  `None` if nothing has been accumulated yet.
        new (Any): The page to merge in.
        entity_keys (Mapping, optional): Maps the name of a list holding entity objects to the fields identifying each entity.  Set `{}` to always concatenate lists. Defaults to DEFAULT_ENTITY_KEYS.

    Returns:
        Any: The merged result.
    """
    if isinstance(old, Mapping) and isinstance(new, Mapping):
        out = dict(old)
        for k, v in new.items():
            if k not in out:
                out[k] = v
            elif k in entity_keys and isinstance(out[k], list) and isinstance(v, list):
                out[k] = _merge_entities(out[k], v, entity_keys[k], entity_keys)
            else:
                out[k] = merge(out[k], v, entity_keys)

        return out

    if isinstance(old, list) and isinstance(new, list):
        return old + new

    return new


def get_continue_params(response: dict) -> Optional[dict]:
    """Gets the query continuation parameters from the response.  Presence of the `continue` object, even an empty one, means there is more to fetch.

    Args:
        response (dict): The response from the server

    Returns:
        Optional[dict]: The continuation parameters to be applied to the next query, or `None` if the query is complete.
    """
    if not isinstance(cont := response.get("continue"), Mapping):
        return None

    return {k: stringify(v) for k, v in cont.items()}


def result_count(result: dict) -> int:
    """Counts the results of a query, which is the length of the first list found under `"query"`.

    Args:
        result (dict): The (merged) response from the server.

    Returns:
        int: The number of results, or 0 if that could not be determined.
    """
    if isinstance(q := result.get("query"), Mapping):
        return next((len(v) for v in q.values() if isinstance(v, list)), 0)

    return 0


async def iter_pages(execute: Executor, params: Mapping, max_pages: int = DEFAULT_MAX_PAGES) -> AsyncGenerator[dict, None]:
    """Performs a query and follows its continuation, yielding each page returned by the server in order.  Pages are requested one at a time, only as they are consumed.

    Args:
        execute (Executor): Sends a request with the given parameters and returns the json response.
        params (Mapping): The parameters of the initial request.
        max_pages (int, optional): The maximum number of pages to request. Defaults to DEFAULT_MAX_PAGES.

    Raises:
        ApiError: If the server responded to any request with an error.
        ContinuationLimitExceeded: If the server still requested continuation after `max_pages` pages.  `partial` is left empty because pages were already handed out.

    Yields:
        AsyncGenerator[dict, None]: Each page returned by the server, without its `continue` object.
    """
    base = ParameterSet(params)
    cont = {}

    for n in range(max_pages):
        response = await execute(base.merged(cont))

        if has_error(response):
            raise ApiError.from_response(response)

        cont = get_continue_params(response)
        yield {k: v for k, v in response.items() if k != "continue"}

        if cont is None:
            return

        log.debug("Continuing query after page %d with %s", n + 1, cont)

    raise ContinuationLimitExceeded(max_pages, {})


async def query_all(execute: Executor, params: Mapping, max_pages: int = DEFAULT_MAX_PAGES, max_results: int = None, entity_keys: Mapping = DEFAULT_ENTITY_KEYS) -> dict:
    """Performs a query, following its continuation until the server reports it is complete, and merges every page into one result.

    Args:
        execute (Executor): Sends a request with the given parameters and returns the json response.
        params (Mapping): The parameters of the initial request.
        max_pages (int, optional): The maximum number of pages to request. Defaults to DEFAULT_MAX_PAGES.
        max_results (int, optional): Stop once at least this many results (see `result_count()`) have been merged.  Set `None` to fetch everything. Defaults to None.
        entity_keys (Mapping, optional): See `merge()`. Defaults to DEFAULT_ENTITY_KEYS.

    Raises:
        ApiError: If the server responded to any request with an error.  Nothing merged so far is returned.
        ContinuationLimitExceeded: If the server still requested continuation after `max_pages` pages.  Carries the pages merged so far as `partial`.

    Returns:
        dict: The merged result, without a `continue` object.
    """
    result = {}
    pages = iter_pages(execute, params, max_pages)

    try:
        async for page in pages:
            result = merge(result, page, entity_keys)

            if max_results is not None and result_count(result) >= max_results:
                break
    except ContinuationLimitExceeded as e:
        e.partial = result
        raise
    finally:
        await pages.aclose()

    return result

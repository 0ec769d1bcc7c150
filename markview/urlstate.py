"""
Query-string form of the engine inputs.

Sort key, sort direction and the filter list are mirrored into URL query
parameters so a filtered view can be shared or bookmarked:

    ?sort=title&sortDirection=asc&filterTags=[{"type":"tag","tag":"js","negative":false}]

``filterTags`` holds the filter list as compact JSON. A malformed value
decodes to an empty filter list; unknown sort values decode to the
defaults.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Union
from urllib.parse import parse_qs, urlencode

from markview.errors import FilterConstructionError, ParseError
from markview.models import SortDirection, SortKey
from markview.query.filters import Filter, filters_from_list, filters_to_list

logger = logging.getLogger(__name__)

SORT_PARAM = "sort"
DIRECTION_PARAM = "sortDirection"
FILTERS_PARAM = "filterTags"


@dataclass
class QueryState:
    """Engine inputs recovered from a query string."""
    filters: List[Filter] = field(default_factory=list)
    sort_key: SortKey = SortKey.DATE_ADDED
    sort_direction: SortDirection = SortDirection.DESC


def serialize_filters(filters: Sequence[Filter]) -> str:
    return json.dumps(filters_to_list(filters), separators=(",", ":"))


def deserialize_filters(text: str) -> List[Filter]:
    """
    Raises:
        ParseError: If the text is not a JSON list of valid filters
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Filter list is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ParseError(f"Filter list must be a JSON array, got {type(data).__name__}")
    try:
        return filters_from_list(data)
    except FilterConstructionError as e:
        raise ParseError(f"Invalid filter in list: {e}") from e


def encode_query(
    filters: Sequence[Filter],
    sort_key: Union[SortKey, str] = SortKey.DATE_ADDED,
    direction: Union[SortDirection, str] = SortDirection.DESC,
) -> str:
    """Build the query string (without the leading '?')."""
    return urlencode({
        SORT_PARAM: SortKey(sort_key).value,
        DIRECTION_PARAM: SortDirection(direction).value,
        FILTERS_PARAM: serialize_filters(filters),
    })


def decode_query(
    query: str,
    default_sort: Union[SortKey, str] = SortKey.DATE_ADDED,
    default_direction: Union[SortDirection, str] = SortDirection.DESC,
) -> QueryState:
    """
    Recover engine inputs from a query string.

    Never raises: bad parameters are logged and replaced by defaults.
    """
    params = parse_qs(query.lstrip("?"), keep_blank_values=True)
    state = QueryState(sort_key=SortKey(default_sort), sort_direction=SortDirection(default_direction))

    sort = _first(params, SORT_PARAM)
    if sort:
        try:
            state.sort_key = SortKey(sort)
        except ValueError:
            logger.warning(f"Unknown sort key in query string: {sort!r}")

    direction = _first(params, DIRECTION_PARAM)
    if direction:
        try:
            state.sort_direction = SortDirection(direction)
        except ValueError:
            logger.warning(f"Unknown sort direction in query string: {direction!r}")

    filters = _first(params, FILTERS_PARAM)
    if filters:
        try:
            state.filters = deserialize_filters(filters)
        except ParseError as e:
            logger.error(f"Failed to parse filters, using none: {e}")

    return state


def _first(params, name: str) -> str:
    values = params.get(name)
    return values[0] if values else ""

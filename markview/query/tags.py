"""
Tag frequency index.

Tags are ``#word`` tokens embedded in bookmark titles. The index is
derived from the current display set and drives autocomplete and the tag
sidebar.

Casing: counting is case-insensitive, but each tag is reported under the
first casing seen in the display set. ``#React`` after ``#react`` counts
toward ``react``. This is a known inconsistency with titles that mix
casings; counts are never re-cased after the fact.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from markview.models import BookmarkNode
from markview.query.filters import Filter, TagFilter


class TagIndex:
    """Occurrence counts of #tags in a set of bookmark titles."""

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self._canonical: Dict[str, str] = {}

    @classmethod
    def from_nodes(cls, nodes: Iterable[BookmarkNode]) -> "TagIndex":
        index = cls()
        for node in nodes:
            for tag in node.tags():
                index._add(tag)
        return index

    def _add(self, tag: str) -> None:
        folded = tag.lower()
        canonical = self._canonical.setdefault(folded, tag)
        self._counts[canonical] = self._counts.get(canonical, 0) + 1

    @property
    def counts(self) -> Dict[str, int]:
        """Tag -> count, in first-seen order."""
        return dict(self._counts)

    def count(self, tag: str) -> int:
        canonical = self._canonical.get(tag.lower())
        return self._counts.get(canonical, 0) if canonical else 0

    def canonical(self, tag: str) -> Optional[str]:
        """The casing this index reports for a tag, if present."""
        return self._canonical.get(tag.lower())

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, tag: str) -> bool:
        return tag.lower() in self._canonical

    def most_common(self, limit: Optional[int] = None) -> List[Tuple[str, int]]:
        """Tags by descending count; ties keep first-seen order."""
        ranked = sorted(self._counts.items(), key=lambda item: -item[1])
        return ranked[:limit] if limit is not None else ranked

    def suggest(self, prefix: str, active_filters: Iterable[Filter] = (),
                limit: int = 20, negative: bool = False) -> List[str]:
        """
        Autocomplete suggestions for a partially typed tag.

        Tags already used by a tag filter are left out. Suggestions are
        rendered the way they would be typed back: ``#tag``, or ``-tag``
        when building a negative filter.
        """
        in_filters = {f.tag.lower() for f in active_filters if isinstance(f, TagFilter)}
        matches = [
            (tag, count) for tag, count in self._counts.items()
            if tag.startswith(prefix) and tag.lower() not in in_filters
        ]
        matches.sort(key=lambda item: -item[1])
        marker = "-" if negative else "#"
        return [f"{marker}{tag}" for tag, _ in matches[:limit]]

    def rank_for_sidebar(self, active_filters: Iterable[Filter]) -> List[Tuple[str, int, Optional[str]]]:
        """
        Order tags for the sidebar.

        Positive tag filters come first, then negative ones, then the rest
        by count. Filtered tags absent from the display set (common with
        negative filters) are listed with a count of 0.

        Returns:
            List of (tag, count, state) with state 'positive', 'negative' or None
        """
        states: Dict[str, str] = {}
        display = dict(self._counts)
        for f in active_filters:
            if not isinstance(f, TagFilter):
                continue
            tag = self.canonical(f.tag) or f.tag
            states[tag.lower()] = "negative" if f.negative else "positive"
            display.setdefault(tag, 0)

        score = {"positive": 2, "negative": 1}
        rows = [(tag, count, states.get(tag.lower())) for tag, count in display.items()]
        rows.sort(key=lambda row: (-score.get(row[2], 0), -row[1]))
        return rows

"""
Tests for markview/query/filters.py.

Covers raw matching of every filter kind, polarity, structural identity
and the wire form.
"""
import pytest

from markview.errors import FilterConstructionError
from markview.models import BookmarkNode
from markview.query.filters import (
    FILTER_TYPES,
    AnyFilter,
    FolderFilter,
    StrictFolderFilter,
    TagFilter,
    TitleFilter,
    UrlFilter,
    evaluate,
    filter_from_dict,
    filters_from_list,
    filters_to_list,
)


def leaves(flat):
    return [n for n in flat.nodes if not n.is_folder]


def kept(filter, flat):
    return [n.id for n in evaluate(filter, leaves(flat), flat.ancestors)]


class TestTextFilters:
    """Test any/title/url substring filters."""

    def test_any_matches_title(self, flat):
        assert kept(AnyFilter("guide"), flat) == ["10"]

    def test_any_matches_url(self, flat):
        assert kept(AnyFilter("GITHUB.com"), flat) == ["40"]

    def test_title_ignores_url(self, flat):
        assert kept(TitleFilter("github.com"), flat) == []
        assert kept(TitleFilter("DEEP"), flat) == ["20"]

    def test_url_ignores_title(self, flat):
        assert kept(UrlFilter("python.org"), flat) == ["30"]
        assert kept(UrlFilter("deep"), flat) == []

    def test_url_filter_never_matches_missing_url(self):
        folder = BookmarkNode(id="f", title="http")
        assert not UrlFilter("http").matches(folder, {})

    def test_empty_substring_matches_everything(self, flat):
        assert kept(AnyFilter(""), flat) == ["10", "20", "30", "40"]


class TestTagFilter:
    """Test #tag matching."""

    def test_matches_token(self, flat):
        assert kept(TagFilter("js"), flat) == ["10", "20"]

    def test_case_insensitive(self, flat):
        assert kept(TagFilter("DOCS"), flat) == ["30", "40"]

    def test_substring_of_longer_tag(self):
        """#java is contained in #javascript."""
        node = BookmarkNode(id="1", title="Tips #javascript", url="u")
        assert TagFilter("java").matches(node, {})
        assert evaluate(TagFilter("java"), [node], {}) == [node]

    def test_needs_hash_marker(self):
        node = BookmarkNode(id="1", title="Learning java", url="u")
        assert not TagFilter("java").matches(node, {})

    def test_empty_tag_rejected(self):
        with pytest.raises(FilterConstructionError):
            TagFilter("")


class TestFolderFilters:
    """Test recursive and strict folder filters."""

    def test_folder_includes_subfolders(self, flat):
        assert kept(FolderFilter("F1"), flat) == ["10", "20"]

    def test_strict_folder_only_direct_children(self, flat):
        assert kept(StrictFolderFilter("F1"), flat) == ["10"]

    def test_root_folder_contains_everything(self, flat):
        assert kept(FolderFilter("0"), flat) == ["10", "20", "30", "40"]

    def test_negative_folder_hides_subtree(self, flat):
        assert kept(FolderFilter("F1", negative=True), flat) == ["30", "40"]

    def test_folder_dominates_strict_folder(self, flat):
        """Anything directly in a folder is also below it."""
        for folder_id in ("0", "1", "F1", "F2", "2"):
            strict = set(kept(StrictFolderFilter(folder_id), flat))
            recursive = set(kept(FolderFilter(folder_id), flat))
            assert strict <= recursive

    def test_unknown_folder_matches_nothing(self, flat):
        assert kept(FolderFilter("missing"), flat) == []


class TestPolarity:
    """Test negative filters."""

    @pytest.mark.parametrize("filter", [
        AnyFilter("x"),
        TagFilter("js"),
        TitleFilter("docs"),
        UrlFilter("https"),
        FolderFilter("F1"),
        StrictFolderFilter("F2"),
    ])
    def test_negation_partitions_candidates(self, filter, flat):
        """Positive and negative results are disjoint and cover every candidate."""
        positive = set(kept(filter, flat))
        negative = set(kept(filter.opposite(), flat))
        assert positive.isdisjoint(negative)
        assert positive | negative == {n.id for n in leaves(flat)}

    def test_evaluate_preserves_order(self, flat):
        candidates = list(reversed(leaves(flat)))
        result = evaluate(TagFilter("js", negative=True), candidates, flat.ancestors)
        assert [n.id for n in result] == ["40", "30"]

    def test_non_bool_negative_rejected(self):
        with pytest.raises(FilterConstructionError):
            TagFilter("js", negative="yes")


class TestIdentity:
    """Test structural equality and identity."""

    def test_structural_equality(self):
        assert TagFilter("js") == TagFilter("js")
        assert hash(FolderFilter("1")) == hash(FolderFilter("1"))

    def test_polarity_distinguishes_filters(self):
        assert TagFilter("js") != TagFilter("js", negative=True)

    def test_identity_ignores_polarity(self):
        assert TagFilter("js").identity == TagFilter("js", negative=True).identity

    def test_folder_and_strict_folder_are_distinct(self):
        assert FolderFilter("1") != StrictFolderFilter("1")
        assert FolderFilter("1").identity != StrictFolderFilter("1").identity

    def test_title_and_any_are_distinct(self):
        assert TitleFilter("a") != AnyFilter("a")

    def test_opposite(self):
        assert UrlFilter("x").opposite() == UrlFilter("x", negative=True)
        assert UrlFilter("x").opposite().opposite() == UrlFilter("x")

    def test_filters_are_immutable(self):
        with pytest.raises(AttributeError):
            TagFilter("js").tag = "py"


class TestWireForm:
    """Test dict conversion of filters."""

    def test_to_dict(self):
        assert FolderFilter("12", negative=True).to_dict() == {
            "type": "folder", "folderId": "12", "negative": True,
        }
        assert AnyFilter("x").to_dict() == {"type": "any", "value": "x", "negative": False}

    @pytest.mark.parametrize("data,expected", [
        ({"type": "tag", "tag": "js"}, TagFilter("js")),
        ({"type": "title", "title": "a", "negative": True}, TitleFilter("a", negative=True)),
        ({"type": "url", "url": "b"}, UrlFilter("b")),
        ({"type": "any", "value": "c"}, AnyFilter("c")),
        ({"type": "folder", "folderId": "1"}, FolderFilter("1")),
        ({"type": "strict_folder", "folderId": "1"}, StrictFolderFilter("1")),
    ])
    def test_from_dict(self, data, expected):
        assert filter_from_dict(data) == expected

    def test_every_kind_is_registered(self):
        assert set(FILTER_TYPES) == {"any", "tag", "title", "url", "folder", "strict_folder"}

    def test_unknown_type(self):
        with pytest.raises(FilterConstructionError, match="Unknown filter type"):
            filter_from_dict({"type": "regex", "value": "x"})

    def test_missing_discriminant(self):
        with pytest.raises(FilterConstructionError, match="missing"):
            filter_from_dict({"type": "folder", "negative": False})

    def test_wrong_discriminant_type(self):
        with pytest.raises(FilterConstructionError):
            filter_from_dict({"type": "title", "title": 5})

    def test_not_a_mapping(self):
        with pytest.raises(FilterConstructionError):
            filter_from_dict(["tag", "js"])

    def test_list_conversion(self):
        filters = [TagFilter("js"), FolderFilter("F2", negative=True)]
        assert filters_from_list(filters_to_list(filters)) == filters

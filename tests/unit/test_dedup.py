import pytest

from paperlab.dedup import (
    LIBRARY,
    READING_LIST,
    find_library_match,
    is_duplicate,
    matches_library_title,
    normalize_for_comparison,
    plan_dedupe,
)
from paperlab.models import Highlight, LibraryTitle, Rect


def _hl(text, created_at, document_id="doc"):
    return Highlight(
        document_id=document_id,
        page_number=1,
        text=text,
        rects=[Rect(0, 0, 10, 10)],
        is_further_reading=True,
        created_at=created_at,
    )


def test_hyphenation_variants_normalize_equal():
    a = normalize_for_comparison("Self-Tracking")
    b = normalize_for_comparison("Self- Tracking")
    c = normalize_for_comparison("Self -Tracking")
    assert a == b == c == "selftracking"


def test_normalization_strips_punctuation_and_whitespace():
    assert normalize_for_comparison('  "A Study:  (of) [Things]," ') == "a study of things"


def test_hyphenated_candidate_matches_reading_list_entry():
    assert is_duplicate("hyper-visor design", ["hypervisor design"])
    assert is_duplicate("hyper-visor design", ["hypervisor design"], policy=READING_LIST)


def test_library_policy_is_looser_than_reading_list_policy():
    candidate = "A Study of Annotation Tools for Readers in 2020"
    existing = ["A Study of Annotation Tools for Readers"]
    assert is_duplicate(candidate, existing, policy=LIBRARY)
    assert not is_duplicate(candidate, existing, policy=READING_LIST)


def test_truncated_citation_matches_library_title_prefix():
    title = "A Study of Annotation Tools for Readers and Writers"
    truncated = "Smith J. 2020. A study of annotation tools for rea"
    assert matches_library_title(truncated, title)
    assert not matches_library_title(truncated, "Completely Different Paper")


def test_empty_titles_never_match():
    assert not matches_library_title("anything", "")
    assert not is_duplicate("", [""], policy=READING_LIST)


def test_unknown_policy_raises():
    with pytest.raises(ValueError):
        is_duplicate("x", ["x"], policy="fuzzy")


def test_find_library_match_returns_title():
    titles = [LibraryTitle("a", "Unrelated Work"), LibraryTitle("b", "Hypervisor Design")]
    assert find_library_match("Hyper- visor design.", titles) == titles[1]
    assert find_library_match("Nothing alike", titles) is None


def test_is_duplicate_accepts_highlights():
    assert is_duplicate("Self- Tracking tools", [_hl("self-tracking tools", 1.0)])


def test_plan_dedupe_keeps_oldest_of_each_group():
    keep = _hl("Self-Tracking tools", 1.0)
    dup = _hl("Self- Tracking Tools.", 2.0, document_id="other")
    unique = _hl("Hypervisor design", 3.0)
    doomed = plan_dedupe([dup, unique, keep])
    assert doomed == [dup]

from paperlab.references import (
    ExtractorConfig,
    clean_hyphenated_line_breaks,
    extract_references,
    find_bibliography_end,
    find_start_by_header,
    looks_like_citation,
)

_PAD = "Discussion text. " * 20

_BIB = (
    "References [1] Smith, J. (2020). A Study of Annotation Tools for Readers. "
    "[2] Doe, A. (2019). Another Study of Citation Parsing in Practice."
)


def test_bracketed_references_after_header():
    refs = extract_references(_PAD + _BIB)
    assert refs == {
        "1": "Smith, J. (2020). A Study of Annotation Tools for Readers.",
        "2": "Doe, A. (2019). Another Study of Citation Parsing in Practice.",
    }


def test_extraction_is_idempotent():
    text = _PAD + _BIB
    assert extract_references(text) == extract_references(text)


def test_whitespace_runs_are_collapsed():
    text = _PAD + _BIB.replace(" ", "\n  ")
    refs = extract_references(text)
    assert refs["1"] == "Smith, J. (2020). A Study of Annotation Tools for Readers."


def test_empty_or_headerless_text_yields_empty_map():
    assert extract_references("") == {}
    assert extract_references(None) == {}
    assert extract_references("Just a short paragraph with nothing to cite.") == {}


def test_short_fragments_are_rejected():
    text = _PAD + "References [1] Smith, J. (2020). A Study. [2] Doe, A. (2019). Another Study."
    refs = extract_references(text)
    # "Smith, J. (2020). A Study." is only 26 characters.
    assert refs == {"2": "Doe, A. (2019). Another Study."}


def test_looks_like_citation_thresholds():
    assert not looks_like_citation("Table 3 accuracy 0.91 0.88")
    assert not looks_like_citation("Averyveryveryverylongsingletoken-without-spaces")
    assert looks_like_citation("Doe, A. (2019). Another Study of Parsing.")
    assert looks_like_citation("a b c d e", ExtractorConfig(min_chars=5, min_words=5))


def test_hyphenated_line_breaks_are_joined():
    assert clean_hyphenated_line_breaks("hyper- visor design") == "hypervisor design"
    assert clean_hyphenated_line_breaks("hyper - visor") == "hypervisor"
    assert clean_hyphenated_line_breaks("hyper -visor") == "hypervisor"
    assert clean_hyphenated_line_breaks("Self-Tracking  tools") == "Self-Tracking tools"


def test_hyphen_cleaning_applies_to_entries():
    text = _PAD + (
        "References [1] Smith, J. (2020). Secure hyper- visor design for everyday readers. "
        "[2] Doe, A. (2019). Another Study of Citation Parsing in Practice."
    )
    assert extract_references(text)["1"] == "Smith, J. (2020). Secure hypervisor design for everyday readers."


def test_numbered_list_fallback():
    text = _PAD + (
        "References 1. Alpha, B. (2018). Numbered entries are parsed without brackets. "
        "2. Beta, C. (2017). The second numbered entry also parses fine. "
        "3. Gamma, D. (2016). A third entry completes the numbered run here."
    )
    refs = extract_references(text)
    assert sorted(refs) == ["1", "2", "3"]
    assert refs["1"] == "Alpha, B. (2018). Numbered entries are parsed without brackets."
    assert refs["3"].startswith("Gamma, D. (2016).")


def test_interleaved_caption_does_not_truncate_bibliography():
    bib = (
        "References [1] Alpha, B. (2018). First entry title for the interleaving test. "
        "Table 2: Accuracy per model "
        "[2] Beta, C. (2017). Second entry title for the interleaving test. "
        "[3] Gamma, D. (2016). Third entry title for the interleaving test. "
        + "More bibliography spill text. " * 20
        + "Appendix A Additional details that are not citations."
    )
    refs = extract_references("Discussion text. " * 80 + bib)
    assert sorted(refs) == ["1", "2", "3"]
    assert "Beta, C." in refs["2"]
    assert "Appendix" not in refs["3"]


def test_end_marker_found_after_last_citation():
    section = "[1] " + "x " * 300 + "Acknowledgements thanks to everyone"
    end = find_bibliography_end(section)
    assert section[end:].startswith("Acknowledgements")


def test_header_in_first_half_is_ignored_and_first_marker_used():
    text = (
        "References are discussed at length here. "
        + "Body text continues. " * 40
        + "[1] Alpha, B. (2018). A fallback entry found without any header. "
        + "[2] Beta, C. (2017). Another fallback entry found without a header."
    )
    refs = extract_references(text)
    assert sorted(refs) == ["1", "2"]
    assert refs["1"].startswith("Alpha, B.")


def test_header_followed_by_citation_start_is_preferred():
    text = (
        "Discussion text. " * 60
        + "See the references listed below for details. "
        + "Filler sentence here. " * 30
        + _BIB
    )
    start = find_start_by_header(text)
    assert start is not None
    assert text[start:].lstrip().startswith("[1] Smith")


def test_stray_markers_before_sequence_are_skipped():
    text = _PAD + (
        "References see [7] and [9] earlier. "
        "[1] Smith, J. (2020). A Study of Annotation Tools for Readers. "
        "[2] Doe, A. (2019). Another Study of Citation Parsing in Practice."
    )
    refs = extract_references(text)
    assert sorted(refs) == ["1", "2"]


def test_gap_tolerance_is_configurable():
    text = _PAD + (
        "References [1] Smith, J. (2020). A Study of Annotation Tools for Readers. "
        "[4] Doe, A. (2019). Another Study of Citation Parsing in Practice."
    )
    assert sorted(extract_references(text)) == ["1", "4"]
    strict = extract_references(text, ExtractorConfig(max_gap=1))
    assert strict == {}

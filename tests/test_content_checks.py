from feature_reacher.content_checks import check_content_quality

from conftest import JS_SOURCE


def test_prose_is_not_flagged():
    report = check_content_quality(
        "Smart Filters let you slice any report by tag. Open the Dashboard to get started."
    )
    assert not report.is_code_like
    assert not report.is_html_heavy
    assert not report.is_minified
    assert not report.should_gate_extraction
    assert report.reasons == []


def test_source_code_is_code_like():
    report = check_content_quality(JS_SOURCE)
    assert report.is_code_like
    assert report.should_gate_extraction
    assert report.code_idiom_count >= 8
    assert any("source code" in r for r in report.reasons)


def test_html_heavy():
    report = check_content_quality("<div><p>x</p></div>" * 5)
    assert report.html_tag_count == 20
    assert report.is_html_heavy
    assert report.should_gate_extraction


def test_minified():
    report = check_content_quality("var a=1;" * 100)
    assert report.long_line_count == 1
    assert report.is_minified


def test_empty_input():
    report = check_content_quality("")
    assert not report.should_gate_extraction
    assert report.to_dict()["code_char_ratio"] == 0.0

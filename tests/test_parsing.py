from __future__ import annotations

import allure

from pixel_selectors.mining.parsing import (
    RESULTS_END_MARKER,
    RESULTS_START_MARKER,
    LineKind,
    ResultsSectionParser,
    SectionState,
    filter_relevant_lines,
    parse_found_line,
    parse_result_line,
)

pytestmark = [
    allure.epic("Selector Mining"),
    allure.feature("Worker Output Protocol"),
]


def test_filter_relevant_lines_drops_progress_chatter() -> None:
    output = "GPU 0: warming up\nFunction found: f42()\nhashrate 1.2 GH/s\nCUDA error: oops\n"

    assert filter_relevant_lines(output) == "Function found: f42()\nCUDA error: oops"


def test_parse_found_line_extracts_name_and_seed() -> None:
    candidate = parse_found_line(
        output="Function found: fkq123()",
        prefix="fkq",
        target_hex="0xAABBCC00",
    )

    assert candidate is not None
    assert candidate.selector == "aabbcc00"
    assert candidate.func_name == "fkq123"
    assert candidate.signature == "fkq123()"
    assert candidate.seed == "123"
    assert candidate.prefix == "fkq"


def test_parse_found_line_prepends_prefix_to_digit_leading_name() -> None:
    candidate = parse_found_line(output="Function found: 9876()", prefix="f", target_hex="aabbcc00")

    assert candidate is not None
    assert candidate.func_name == "f9876"
    assert candidate.signature == "f9876()"


def test_parse_found_line_returns_none_without_match() -> None:
    assert parse_found_line(output="Error: nothing", prefix="f", target_hex="aabbcc00") is None


def test_parse_result_line_reads_pipe_separated_fields() -> None:
    candidate = parse_result_line(" 0xAABBCC00 | f123() | 123 ", prefix="f")

    assert candidate is not None
    assert candidate.selector == "aabbcc00"
    assert candidate.func_name == "f123"
    assert candidate.seed == "123"
    assert candidate.nonce == "123"


def test_parse_result_line_rejects_malformed_lines() -> None:
    assert parse_result_line("0xaabbcc00|f123()") is None
    assert parse_result_line("0xaabbcc00|f123|1") is None
    assert parse_result_line("|f123()|1") is None


def test_results_section_parser_tracks_markers() -> None:
    parser = ResultsSectionParser(prefix="f")
    stream = [
        "Loaded 2 selectors\n",
        "\n",
        f"{RESULTS_START_MARKER}\n",
        "0xaabbcc00|f1()|1\n",
        "garbage\n",
        f"{RESULTS_END_MARKER}\n",
        "0xddeeff01|f2()|2\n",
    ]

    parsed = [parser.feed(line) for line in stream]

    assert [item.kind for item in parsed] == [
        LineKind.INFO,
        LineKind.BLANK,
        LineKind.MARKER,
        LineKind.RESULT,
        LineKind.MALFORMED,
        LineKind.MARKER,
        LineKind.INFO,
    ]
    assert parsed[3].candidate is not None
    assert parsed[3].candidate.func_name == "f1"
    assert parser.state is SectionState.OUTSIDE


def test_results_section_parser_requires_exact_marker_line() -> None:
    parser = ResultsSectionParser()

    parsed = parser.feed(f"prefix {RESULTS_START_MARKER}")

    assert parsed.kind is LineKind.INFO
    assert parser.state is SectionState.OUTSIDE

import json

import pytest

from chart_generator.errors import RepairExhaustedError
from chart_generator.repair import (
    STAGE_CLOSE_COLOR_ARRAY,
    STAGE_CLOSE_OPEN_BRACKETS,
    STAGE_CLOSE_UNTERMINATED_STRING,
    STAGE_ESCAPE_CONTROL_CHARS,
    STAGE_STRICT,
    STAGE_TRUNCATE_TRAILING_GARBAGE,
    close_open_brackets,
    escape_control_chars,
    parse_json,
    repair_json,
    scan,
    truncate_trailing_garbage,
)

VALID_DOCS = [
    '{"chartType": "bar", "chartData": {"labels": ["a", "b"], "datasets": []}}',
    '{"a": "quote \\" inside", "b": [1, 2, {"c": null}]}',
    '{"html": "<p>one</p>\\n<p>two</p>", "n": 1.5e3}',
    "[1, 2, 3]",
]


@pytest.mark.parametrize("text", VALID_DOCS)
def test_valid_json_is_parsed_strictly(text):
    result = repair_json(text)
    assert result.stage == STAGE_STRICT
    assert result.value == json.loads(text)


@pytest.mark.parametrize("text", VALID_DOCS)
def test_repair_output_is_stable_when_fed_back(text):
    first = repair_json(text)
    second = repair_json(first.text)
    assert second.stage == STAGE_STRICT
    assert second.value == first.value


def test_literal_newline_inside_string_is_escaped():
    result = repair_json('{"a":1,"b":"line1\nline2"}')
    assert result.stage == STAGE_ESCAPE_CONTROL_CHARS
    assert result.value == {"a": 1, "b": "line1\nline2"}


def test_html_with_tabs_and_carriage_returns_recovers():
    text = '{"templateContent": {"main": "<ul>\r\n\t<li>Growth</li>\r\n</ul>"}}'
    result = repair_json(text)
    assert result.stage == STAGE_ESCAPE_CONTROL_CHARS
    assert result.value["templateContent"]["main"] == "<ul>\r\n\t<li>Growth</li>\r\n</ul>"


def test_escape_pass_leaves_whitespace_between_tokens_alone():
    text = '{\n  "a": "x\ny"\n}'
    assert escape_control_chars(text) == '{\n  "a": "x\\ny"\n}'


def test_escape_pass_respects_escaped_quotes():
    text = '{"a": "say \\"hi\\"\nthere"}'
    assert json.loads(escape_control_chars(text)) == {"a": 'say "hi"\nthere'}


def test_trailing_garbage_is_truncated():
    result = repair_json('{"a":1}TRAILING_NOISE')
    assert result.stage == STAGE_TRUNCATE_TRAILING_GARBAGE
    assert result.text == '{"a":1}'
    assert result.value == {"a": 1}


def test_truncation_matches_parsing_the_prefix():
    obj = '{"chartType": "line", "chartData": {"labels": ["}"], "datasets": [{"data": [1, 2]}]}}'
    text = obj + "\n\nI hope this chart helps! {not json"
    result = repair_json(text)
    assert result.stage == STAGE_TRUNCATE_TRAILING_GARBAGE
    assert result.value == json.loads(obj)


def test_truncate_is_a_no_op_when_object_ends_the_text():
    assert truncate_trailing_garbage('{"a":1}') == '{"a":1}'


@pytest.mark.parametrize(
    "complete, cut",
    [
        ('{"chartType": "bar", "chartData": {"labels": ["a"]}}', 1),
        ('{"chartType": "bar", "chartData": {"datasets": [{"data": [1, 2]}]}}', 2),
        ('{"chartType": "bar", "chartData": {"datasets": [{"data": [1, 2]}]}}', 3),
    ],
)
def test_missing_closers_are_appended(complete, cut):
    text = complete[:-cut]
    result = repair_json(text)
    assert result.stage == STAGE_CLOSE_OPEN_BRACKETS
    assert result.value["chartType"] == "bar"
    assert result.value == json.loads(complete)


def test_closers_follow_actual_nesting_order():
    text = '{"a": [{"b": [1, {"c": 2}'
    assert close_open_brackets(text) == text + "]}]}"


def test_trailing_comma_is_dropped_before_closing():
    result = repair_json('{"a": [1, 2],')
    assert result.stage == STAGE_CLOSE_OPEN_BRACKETS
    assert result.value == {"a": [1, 2]}


def test_over_closed_text_is_not_repaired():
    assert close_open_brackets('{"a": 1}}') == '{"a": 1}}'
    assert close_open_brackets('{"a": [1}') == '{"a": [1}'


def test_unterminated_string_value_is_closed():
    result = repair_json('{"chartType": "pie", "user_message": "Sales by reg')
    assert result.stage == STAGE_CLOSE_UNTERMINATED_STRING
    assert result.value == {"chartType": "pie", "user_message": "Sales by reg"}


def test_unterminated_key_is_dropped():
    result = repair_json('{"chartType": "pie", "chartDa')
    assert result.stage == STAGE_CLOSE_UNTERMINATED_STRING
    assert result.value == {"chartType": "pie"}


def test_unterminated_string_after_dangling_escape():
    result = repair_json('{"labels": ["Q1", "Q2 \\')
    assert result.stage == STAGE_CLOSE_UNTERMINATED_STRING
    assert result.value == {"labels": ["Q1", "Q2 "]}


def test_color_array_trailing_into_junk_is_closed():
    text = (
        '{"chartType": "bar", "chartData": {"datasets": [{"label": "Revenue", "borderColor": [\n'
        '"rgba(54, 162, 235, 1)",\n'
        '"rgba(255, 99, 132, 1)",\n'
        "rgba(75, 192"
    )
    result = repair_json(text)
    assert result.stage == STAGE_CLOSE_COLOR_ARRAY
    colors = result.value["chartData"]["datasets"][0]["borderColor"]
    assert colors == ["rgba(54, 162, 235, 1)", "rgba(255, 99, 132, 1)"]


def test_color_array_stage_does_not_hide_later_repairs():
    # A closed color list followed by truncation is left to the bracket closer.
    text = '{"colors": ["rgba(1, 2, 3, 1)"], "chartData": {"labels": ["a"]'
    result = repair_json(text)
    assert result.stage == STAGE_CLOSE_OPEN_BRACKETS
    assert result.value == {"colors": ["rgba(1, 2, 3, 1)"], "chartData": {"labels": ["a"]}}


def test_stages_compose_newline_then_truncation():
    result = repair_json('{"main": "<p>a</p>\n<p>b</p>"} trailing words')
    assert result.stage == STAGE_TRUNCATE_TRAILING_GARBAGE
    assert result.value == {"main": "<p>a</p>\n<p>b</p>"}


def test_scan_tracks_state():
    state = scan('{"a": "x{", "b": [1, 2')
    assert state.in_string is False
    assert state.brace_depth == 1
    assert state.bracket_depth == 1
    assert state.open_stack == ["{", "["]
    assert state.last_valid_object_end is None


def test_empty_input_is_diagnosed():
    with pytest.raises(RepairExhaustedError) as excinfo:
        repair_json("")
    assert excinfo.value.diagnosis == "empty_input"
    assert excinfo.value.text_length == 0


def test_prose_is_diagnosed_as_not_json():
    with pytest.raises(RepairExhaustedError) as excinfo:
        parse_json("Here is your chart: bars going up")
    assert excinfo.value.diagnosis == "not_json_shaped"
    assert excinfo.value.preview.startswith("Here is your chart")


def test_unrepairable_truncation_is_diagnosed():
    with pytest.raises(RepairExhaustedError) as excinfo:
        parse_json('{"a": 1,, "b": [')
    assert excinfo.value.diagnosis == "truncated"


def test_preview_is_bounded():
    text = "x" * 2000
    with pytest.raises(RepairExhaustedError) as excinfo:
        parse_json(text)
    assert excinfo.value.text_length == 2000
    assert len(excinfo.value.preview) == 503
    assert excinfo.value.preview.endswith("...")


@pytest.mark.parametrize(
    "complete",
    [
        '{"a": ["rgba(1, 2, 3, 1)", {"d": 1}]}',
        '{"a": ["rgba(1, 2, 3, 1)", 5]}',
        '{"a": ["rgba(1, 2, 3, 1)", "Sales"]}',
    ],
)
def test_elements_after_last_color_survive_truncation(complete):
    result = repair_json(complete[:-2])
    assert result.stage == STAGE_CLOSE_OPEN_BRACKETS
    assert result.value == json.loads(complete)


def test_trailing_text_with_its_own_object_is_truncated():
    result = repair_json('{"a":1}\nExample: {"b":2}')
    assert result.stage == STAGE_TRUNCATE_TRAILING_GARBAGE
    assert result.value == {"a": 1}
    assert truncate_trailing_garbage('{"a":1} see {"b":2} and more') == '{"a":1}'

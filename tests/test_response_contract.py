"""Validation of chat-model analysis answers."""

from __future__ import annotations

import pytest

from callscribe.services.response_contract import AnalysisParseError, AnalysisResponse


def test_parses_markdown_fenced_json() -> None:
    payload = """```json
    {"summary": "Caller asked about pricing.", "categories": ["sales"], "tags": ["pricing"]}
    ```"""

    parsed = AnalysisResponse.from_json(payload)

    assert parsed.summary == "Caller asked about pricing."
    assert parsed.categories == ["sales"]
    assert parsed.tags == ["pricing"]


def test_missing_and_null_fields_use_defaults() -> None:
    parsed = AnalysisResponse.from_json('{"summary": null, "tags": null}')

    assert parsed.summary == ""
    assert parsed.categories == []
    assert parsed.tags == []


def test_labels_are_stripped_and_deduplicated_in_order() -> None:
    parsed = AnalysisResponse.from_json(
        '{"summary": "s", "categories": ["Billing", " billing ", "", "Refund"],'
        ' "tags": ["a", "b", "A"]}'
    )

    assert parsed.categories == ["Billing", "Refund"]
    assert parsed.tags == ["a", "b"]


def test_prose_around_the_object_is_ignored() -> None:
    parsed = AnalysisResponse.from_json(
        'Here you go: {"summary": "ok", "categories": [], "tags": []} Thanks!'
    )

    assert parsed.summary == "ok"


@pytest.mark.parametrize(
    "payload",
    [
        "",
        "not json at all",
        '["summary", "categories"]',
        '{"summary": 5, "categories": [], "tags": []}',
        '{"summary": "ok", "categories": "sales", "tags": []}',
        '{"summary": "ok", "categories": [], "tags": [1, 2]}',
    ],
)
def test_malformed_answers_raise_parse_error(payload: str) -> None:
    with pytest.raises(AnalysisParseError):
        AnalysisResponse.from_json(payload)

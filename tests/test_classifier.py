import json

import pytest
import requests

from fakes import FakeResponse, FakeSession, chat_response
from issue_classifier.classifier import (
    IssueClassifier,
    extract_classifications,
    normalize_confidence,
    normalize_label,
    parse_json_response,
)
from issue_classifier.models import Classification, GitHubIssue


def _issues(*numbers: int) -> list[GitHubIssue]:
    return [GitHubIssue(number=number, content=f"Body of {number}") for number in numbers]


def _classifier(session: FakeSession, parse_retries: int = 2) -> IssueClassifier:
    return IssueClassifier(
        "test-key",
        model="test/model",
        base_url="https://llm.example/api/v1/",
        parse_retries=parse_retries,
        session=session,
    )


def test_parse_json_response_extracts_payload():
    payload = parse_json_response(
        '```json\n{"issues": [{"issue_number": 4, "classification": "advanced", "confidence": 0.7}]}\n```'
    )

    assert payload["issues"][0]["issue_number"] == 4


def test_normalize_label():
    assert normalize_label("good-first-issue") == "good-first-issue"
    assert normalize_label("Good First Issue") == "good-first-issue"
    assert normalize_label("ADVANCED") == "advanced"
    assert normalize_label("easy") is None
    assert normalize_label(None) is None


def test_normalize_confidence():
    assert normalize_confidence(0.9) == 0.9
    assert normalize_confidence("0.25") == 0.25
    assert normalize_confidence(None) == 0.0
    assert normalize_confidence(1.5) is None
    assert normalize_confidence("high") is None
    assert normalize_confidence(True) is None


def test_extract_classifications_drops_unknown_and_invalid_entries():
    parsed = {
        "issues": [
            {"issue_number": 1, "classification": "good-first-issue", "confidence": 0.9},
            {"issue_number": 2, "classification": "advanced", "confidence": 0.6},
            {"issue_number": 99, "classification": "good-first-issue", "confidence": 0.9},
            {"issue_number": 3, "classification": "maybe", "confidence": 0.9},
            {"issue_number": "x", "classification": "advanced"},
            "not-an-object",
        ]
    }

    results = extract_classifications(parsed, {1, 2, 3})

    assert results == [
        Classification(number=1, label="good-first-issue", confidence=0.9),
        Classification(number=2, label="advanced", confidence=0.6),
    ]


def test_extract_classifications_accepts_list_wrapper():
    parsed = [{"issues": [{"issue_number": 5, "classification": "good-first-issue", "confidence": 0.8}]}]

    assert extract_classifications(parsed, {5}) == [
        Classification(number=5, label="good-first-issue", confidence=0.8)
    ]


@pytest.mark.parametrize("parsed", [{}, [], {"issues": None}, "text", None])
def test_extract_classifications_handles_missing_shape(parsed):
    assert extract_classifications(parsed, {1}) == []


def test_classification_match_requires_confidence_above_half():
    assert Classification(1, "good-first-issue", 0.51).is_match()
    assert not Classification(1, "good-first-issue", 0.5).is_match()
    assert not Classification(1, "advanced", 0.99).is_match()


def test_classify_sends_chat_completion():
    content = json.dumps(
        {"issues": [{"issue_number": 7, "classification": "good-first-issue", "confidence": 0.8}]}
    )
    session = FakeSession([chat_response(content)])

    results = _classifier(session).classify(_issues(7))

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://llm.example/api/v1/chat/completions"
    assert kwargs["json"]["model"] == "test/model"
    assert kwargs["json"]["response_format"] == {"type": "json_object"}
    assert "## Issue 7" in kwargs["json"]["messages"][1]["content"]
    assert session.headers["Authorization"] == "Bearer test-key"
    assert results == [Classification(number=7, label="good-first-issue", confidence=0.8)]


def test_classify_retries_unparseable_response_then_gives_up():
    session = FakeSession([chat_response("not json"), chat_response("still not json")])

    results = _classifier(session, parse_retries=2).classify(_issues(1, 2))

    assert results == []
    assert len(session.calls) == 2


def test_classify_recovers_on_second_parse_attempt():
    content = json.dumps(
        {"issues": [{"issue_number": 2, "classification": "advanced", "confidence": 0.9}]}
    )
    session = FakeSession([chat_response("oops"), chat_response(content)])

    results = _classifier(session).classify(_issues(1, 2))

    assert results == [Classification(number=2, label="advanced", confidence=0.9)]


def test_classify_treats_malformed_body_as_unparseable():
    session = FakeSession([FakeResponse(payload={"error": "bad"})])

    assert _classifier(session, parse_retries=1).classify(_issues(1)) == []


def test_classify_skips_batches_without_content():
    session = FakeSession([])
    issues = [GitHubIssue(number=1, content=""), GitHubIssue(number=2, content="   ")]

    assert _classifier(session).classify(issues) == []
    assert session.calls == []


def test_classify_propagates_upstream_errors():
    session = FakeSession([FakeResponse(status_code=500, payload={})])

    with pytest.raises(requests.HTTPError):
        _classifier(session).classify(_issues(1))


def test_classifier_requires_api_key():
    with pytest.raises(RuntimeError):
        IssueClassifier("")

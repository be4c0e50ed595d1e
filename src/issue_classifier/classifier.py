from __future__ import annotations

import json
import logging
import re
import time
from typing import Optional, Sequence

import requests

from issue_classifier.config import DEFAULT_BASE_URL, DEFAULT_MODEL
from issue_classifier.http_retry import compute_throttle_delay, send_with_retries
from issue_classifier.models import CLASSIFICATION_LABELS, Classification, GitHubIssue
from issue_classifier.prompts import build_document, build_messages

logger = logging.getLogger(__name__)

TEMPERATURE = 0.0


def parse_json_response(text: str) -> dict[str, object]:
    try:
        return json.loads(text, strict=False)
    except json.JSONDecodeError:
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if not match:
            raise
        return json.loads(match.group(0), strict=False)


def normalize_label(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower().replace("_", "-").replace(" ", "-")
    return lowered if lowered in CLASSIFICATION_LABELS else None


def normalize_confidence(value: object) -> Optional[float]:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return None
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return None
    if confidence != confidence or not 0.0 <= confidence <= 1.0:
        return None
    return confidence


def _as_int(value: object) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def extract_classifications(
    parsed: object,
    known_numbers: set[int],
) -> list[Classification]:
    if isinstance(parsed, list):
        parsed = parsed[0] if parsed else {}
    if not isinstance(parsed, dict):
        return []
    entries = parsed.get("issues")
    if not isinstance(entries, list):
        return []

    results: list[Classification] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        number = _as_int(entry.get("issue_number"))
        label = normalize_label(entry.get("classification"))
        confidence = normalize_confidence(entry.get("confidence"))
        if number is None or number not in known_numbers or label is None or confidence is None:
            logger.debug("Dropping unusable classification entry: %s", entry)
            continue
        logger.debug("Issue %s classified as %s (%.2f)", number, label, confidence)
        results.append(Classification(number=number, label=label, confidence=confidence))
    return results


class IssueClassifier:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        max_retries: int = 5,
        base_retry_seconds: int = 5,
        parse_retries: int = 2,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("OPENROUTER_API_KEY not found in environment or .env")
        self.model = model
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.max_retries = max_retries
        self.base_retry_seconds = base_retry_seconds
        self.parse_retries = max(1, parse_retries)
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Content-Type": "application/json", "Authorization": f"Bearer {api_key}"}
        )

    def _payload(self, issues: Sequence[GitHubIssue]) -> dict[str, object]:
        return {
            "model": self.model,
            "messages": build_messages(issues),
            "temperature": TEMPERATURE,
            "response_format": {"type": "json_object"},
        }

    def _complete(self, payload: dict[str, object]) -> str:
        response = send_with_retries(
            self.session,
            "POST",
            self.url,
            max_retries=self.max_retries,
            base_retry_seconds=self.base_retry_seconds,
            json=payload,
        )
        throttle_delay = compute_throttle_delay(response.headers)
        if throttle_delay > 0:
            time.sleep(throttle_delay)
        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            return ""
        return content if isinstance(content, str) else ""

    def classify(self, issues: Sequence[GitHubIssue]) -> list[Classification]:
        if not issues:
            return []
        first, last = issues[0].number, issues[-1].number
        if not build_document(issues):
            logger.info("Issues %s-%s have no content, skipping classification", first, last)
            return []

        logger.debug("Classifying issues range: %s-%s", first, last)
        known_numbers = {issue.number for issue in issues}
        payload = self._payload(issues)
        for attempt in range(self.parse_retries):
            raw = self._complete(payload)
            try:
                parsed = parse_json_response(raw)
            except json.JSONDecodeError:
                logger.debug("Unparseable classifier response (attempt %d)", attempt + 1)
                continue
            return extract_classifications(parsed, known_numbers)
        logger.warning(
            "Classifier response for issues %s-%s could not be parsed, treating them as advanced",
            first,
            last,
        )
        return []

"""Fetch, classify and label recently opened issues.

The three stages run one after the other. Inside a stage every call to
GitHub or the classifier runs in a worker thread and is gated by a
:class:`CountingSemaphore`, so at most ``max_concurrent`` requests are in
flight against either service.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol, Sequence

from issue_classifier.batching import batch_items, flatten_batches
from issue_classifier.classifier import IssueClassifier
from issue_classifier.config import PipelineConfig
from issue_classifier.fanout import gather_bounded
from issue_classifier.github_client import GitHubClient
from issue_classifier.models import (
    Classification,
    GitHubIssue,
    GoodFirstIssue,
    RepoDetails,
)
from issue_classifier.semaphore import CountingSemaphore

logger = logging.getLogger(__name__)


class IssueSource(Protocol):
    def list_open_issues(
        self, repo: RepoDetails, since: str, page: int, per_page: int = 50
    ) -> list[dict[str, Any]]: ...

    def has_linked_pull_request(self, repo: RepoDetails, number: int) -> bool: ...

    def set_labels(self, repo: RepoDetails, number: int, labels: list[str]) -> None: ...


class Classifier(Protocol):
    def classify(self, issues: Sequence[GitHubIssue]) -> list[Classification]: ...


def get_since_date(lookback_days: int, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=lookback_days)


def format_since(since: datetime) -> str:
    return since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_created_at(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def label_names(raw_labels: Sequence[object]) -> list[str]:
    names: list[str] = []
    for label in raw_labels or []:
        if isinstance(label, str):
            names.append(label)
        elif isinstance(label, dict) and label.get("name"):
            names.append(label["name"])
    return names


def is_good_first_issue_label(name: str) -> bool:
    lowered = name.lower()
    return "good" in lowered and "first" in lowered and "issue" in lowered


def select_candidates(page_data: Sequence[dict[str, Any]], since: datetime) -> list[GitHubIssue]:
    candidates: list[GitHubIssue] = []
    for raw in page_data:
        if not raw:
            continue
        number = raw["number"]
        if raw.get("pull_request"):
            logger.debug("%s is a pull request, skipping", number)
            continue
        if parse_created_at(raw["created_at"]) < since:
            logger.debug("Issue %s was created before %s, skipping", number, format_since(since))
            continue
        labels = label_names(raw.get("labels", []))
        if any(is_good_first_issue_label(name) for name in labels):
            logger.debug("Issue %s is already labeled as a good first issue", number)
            continue
        candidates.append(GitHubIssue(number=number, content=raw.get("body") or "", labels=labels))
    return candidates


async def fetch_recent_issues(
    github: IssueSource,
    config: PipelineConfig,
    now: Optional[datetime] = None,
) -> list[GitHubIssue]:
    logger.debug("Starting to get issues from the last %d days", config.lookback_days)
    since = get_since_date(config.lookback_days, now)
    since_param = format_since(since)
    semaphore = CountingSemaphore(config.max_concurrent, "cross-reference")

    async def _with_pr_flag(issue: GitHubIssue) -> GitHubIssue:
        has_pr = await asyncio.to_thread(github.has_linked_pull_request, config.repo, issue.number)
        logger.debug("Issue %s has PR: %s", issue.number, has_pr)
        return GitHubIssue(
            number=issue.number, content=issue.content, labels=issue.labels, has_pr=has_pr
        )

    all_issues: list[GitHubIssue] = []
    page = 1
    while True:
        logger.debug("Retrieving issues for page %d", page)
        page_data = await asyncio.to_thread(
            github.list_open_issues, config.repo, since_param, page, config.page_length
        )
        candidates = select_candidates(page_data, since)
        checked = await gather_bounded(candidates, _with_pr_flag, semaphore)
        all_issues.extend(issue for issue in checked if not issue.has_pr)
        logger.debug("Found %d candidate issues on page %d", len(candidates), page)
        if len(page_data) < config.page_length:
            break
        page += 1

    logger.info("Found %d total issues that do not have associated PRs", len(all_issues))
    return all_issues


async def classify_issues(
    issues: Sequence[GitHubIssue],
    classifier: Classifier,
    config: PipelineConfig,
) -> list[GoodFirstIssue]:
    logger.debug("Starting to classify issues")
    semaphore = CountingSemaphore(config.max_concurrent, "classify")
    by_number = {issue.number: issue for issue in issues}

    async def _classify_batch(batch: list[GitHubIssue]) -> list[Classification]:
        return await asyncio.to_thread(classifier.classify, batch)

    batches = batch_items(issues, config.batch_size)
    results = flatten_batches(await gather_bounded(batches, _classify_batch, semaphore))
    good_first_issues: list[GoodFirstIssue] = []
    seen: set[int] = set()
    for result in results:
        if result.number in seen or result.number not in by_number:
            continue
        seen.add(result.number)
        if result.is_match(config.confidence_threshold):
            labels = list(by_number[result.number].labels)
            good_first_issues.append(GoodFirstIssue(number=result.number, labels=labels))
    logger.info("Found %d good first issues", len(good_first_issues))
    return good_first_issues


async def label_issues(
    issues: Sequence[GoodFirstIssue],
    github: IssueSource,
    config: PipelineConfig,
) -> None:
    logger.debug("Starting to update issues with the 'good first issue' label")
    semaphore = CountingSemaphore(config.max_concurrent, "update-issues")

    async def _label(issue: GoodFirstIssue) -> None:
        await asyncio.to_thread(
            github.set_labels, config.repo, issue.number, issue.labels_with_good_first_issue()
        )
        logger.debug("Labeled issue %s", issue.number)

    await gather_bounded(issues, _label, semaphore)
    logger.info("Updated %d issues with the 'good first issue' label", len(issues))


async def run_pipeline(
    config: PipelineConfig,
    github: IssueSource,
    classifier: Classifier,
    now: Optional[datetime] = None,
) -> list[GoodFirstIssue]:
    issues = await fetch_recent_issues(github, config, now)
    good_first_issues = await classify_issues(issues, classifier, config)
    await label_issues(good_first_issues, github, config)
    return good_first_issues


def run(config: PipelineConfig) -> list[GoodFirstIssue]:
    github = GitHubClient(
        config.github_token,
        api_url=config.github_api_url,
        max_retries=config.max_retries,
        base_retry_seconds=config.base_retry_seconds,
    )
    classifier = IssueClassifier(
        config.openrouter_api_key,
        model=config.model,
        base_url=config.base_url,
        max_retries=config.max_retries,
        base_retry_seconds=config.base_retry_seconds,
        parse_retries=config.parse_retries,
    )
    logger.info("Classifying issues of %s", config.repo.full_name)
    return asyncio.run(run_pipeline(config, github, classifier))

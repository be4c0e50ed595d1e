from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from issue_classifier.config import GITHUB_API_URL
from issue_classifier.http_retry import send_with_retries
from issue_classifier.models import RepoDetails

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class GitHubClient:
    def __init__(
        self,
        token: str,
        api_url: str = GITHUB_API_URL,
        max_retries: int = 5,
        base_retry_seconds: int = 5,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not token:
            raise RuntimeError("GITHUB_TOKEN not found in environment or .env")
        self.api_url = api_url.rstrip("/")
        self.max_retries = max_retries
        self.base_retry_seconds = base_retry_seconds
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            }
        )

    def _issues_url(self, repo: RepoDetails, *parts: object) -> str:
        suffix = "".join(f"/{part}" for part in parts)
        return f"{self.api_url}/repos/{repo.owner}/{repo.name}/issues{suffix}"

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        return send_with_retries(
            self.session,
            method,
            url,
            max_retries=self.max_retries,
            base_retry_seconds=self.base_retry_seconds,
            **kwargs,
        )

    def list_open_issues(
        self,
        repo: RepoDetails,
        since: str,
        page: int,
        per_page: int = 50,
    ) -> list[dict[str, Any]]:
        response = self._request(
            "GET",
            self._issues_url(repo),
            params={
                "state": "open",
                "sort": "created",
                "since": since,
                "page": page,
                "per_page": per_page,
            },
        )
        return response.json()

    def has_linked_pull_request(self, repo: RepoDetails, number: int) -> bool:
        response = self._request(
            "GET",
            self._issues_url(repo, number, "timeline"),
            raise_for_status=False,
        )
        if response.status_code != 200:
            logger.debug("Timeline for issue %s returned %s", number, response.status_code)
            return False
        for event in response.json() or []:
            if event.get("event") != "cross-referenced":
                continue
            source_issue = (event.get("source") or {}).get("issue") or {}
            if source_issue.get("pull_request"):
                return True
        return False

    def set_labels(self, repo: RepoDetails, number: int, labels: list[str]) -> None:
        self._request("PATCH", self._issues_url(repo, number), json={"labels": labels})

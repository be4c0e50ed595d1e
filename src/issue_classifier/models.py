from __future__ import annotations

from dataclasses import dataclass, field

GOOD_FIRST_ISSUE_LABEL = "good first issue"
GOOD_FIRST_ISSUE_CLASS = "good-first-issue"
ADVANCED_CLASS = "advanced"
CLASSIFICATION_LABELS = {GOOD_FIRST_ISSUE_CLASS, ADVANCED_CLASS}


@dataclass(frozen=True)
class RepoDetails:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class GitHubIssue:
    number: int
    content: str
    labels: list[str] = field(default_factory=list)
    has_pr: bool = False


@dataclass(frozen=True)
class Classification:
    number: int
    label: str
    confidence: float

    def is_match(self, threshold: float = 0.5) -> bool:
        return self.label == GOOD_FIRST_ISSUE_CLASS and self.confidence > threshold


@dataclass(frozen=True)
class GoodFirstIssue:
    number: int
    labels: list[str] = field(default_factory=list)

    def labels_with_good_first_issue(self) -> list[str]:
        return [*self.labels, GOOD_FIRST_ISSUE_LABEL]

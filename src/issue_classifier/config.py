from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from issue_classifier.batching import ISSUES_BATCH_SIZE
from issue_classifier.models import RepoDetails

DEFAULT_MODEL = "openai/gpt-4o-mini"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
GITHUB_API_URL = "https://api.github.com"


def load_env(env_path: Path) -> None:
    if not env_path.exists():
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _require_env(*names: str) -> str:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    raise RuntimeError(f"{names[0]} not found in environment or .env")


def _int_from_env(name: str, default: int, minimum: int = 0) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return max(minimum, parsed)


def _float_from_env(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class PipelineConfig:
    repo: RepoDetails
    github_token: str
    openrouter_api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    github_api_url: str = GITHUB_API_URL
    max_concurrent: int = 5
    batch_size: int = ISSUES_BATCH_SIZE
    page_length: int = 50
    lookback_days: int = 7
    max_retries: int = 5
    base_retry_seconds: int = 5
    parse_retries: int = 2
    confidence_threshold: float = 0.5

    @staticmethod
    def from_env(env_path: Optional[Path] = None) -> PipelineConfig:
        load_env(env_path or Path(".env"))
        owner = os.environ.get("REPOSITORY_OWNER")
        name = os.environ.get("REPOSITORY_NAME")
        if not owner or not name:
            raise RuntimeError("REPOSITORY_NAME or REPOSITORY_OWNER not found in environment or .env")
        return PipelineConfig(
            repo=RepoDetails(owner=owner, name=name),
            github_token=_require_env("GITHUB_TOKEN"),
            openrouter_api_key=_require_env("OPENROUTER_API_KEY", "OPEN_ROUTER_API_KEY"),
            model=os.environ.get("OPENROUTER_MODEL", DEFAULT_MODEL),
            base_url=os.environ.get("OPENROUTER_BASE_URL", DEFAULT_BASE_URL),
            github_api_url=os.environ.get("GITHUB_API_URL", GITHUB_API_URL),
            max_concurrent=_int_from_env("MAX_CONCURRENT", 5, minimum=1),
            batch_size=_int_from_env("ISSUES_BATCH_SIZE", ISSUES_BATCH_SIZE, minimum=1),
            lookback_days=_int_from_env("LOOKBACK_DAYS", 7),
            max_retries=_int_from_env("HTTP_MAX_RETRIES", 5),
            base_retry_seconds=_int_from_env("HTTP_RETRY_BASE_SECONDS", 5),
            parse_retries=_int_from_env("CLASSIFIER_PARSE_RETRIES", 2, minimum=1),
            confidence_threshold=_float_from_env("CONFIDENCE_THRESHOLD", 0.5),
        )

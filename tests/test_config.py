import logging
import os
from pathlib import Path

import pytest

from issue_classifier.config import DEFAULT_MODEL, PipelineConfig, load_env
from issue_classifier.log import resolve_level, setup_logging

ENV_KEYS = [
    "GITHUB_TOKEN",
    "REPOSITORY_OWNER",
    "REPOSITORY_NAME",
    "OPENROUTER_API_KEY",
    "OPEN_ROUTER_API_KEY",
    "OPENROUTER_MODEL",
    "MAX_CONCURRENT",
    "ISSUES_BATCH_SIZE",
    "LOOKBACK_DAYS",
    "CONFIDENCE_THRESHOLD",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return tmp_path / ".env"


def test_load_env_sets_key(tmp_path: Path):
    env_path = tmp_path / ".env"
    env_path.write_text("# comment\nGITHUB_TOKEN='test-token'\nnot a pair\n", encoding="utf-8")

    os.environ.pop("GITHUB_TOKEN", None)
    load_env(env_path)

    assert os.environ.pop("GITHUB_TOKEN") == "test-token"


def test_load_env_does_not_override(monkeypatch, tmp_path: Path):
    env_path = tmp_path / ".env"
    env_path.write_text("REPOSITORY_OWNER=from-file\n", encoding="utf-8")
    monkeypatch.setenv("REPOSITORY_OWNER", "from-env")

    load_env(env_path)

    assert os.environ["REPOSITORY_OWNER"] == "from-env"


def test_from_env_reads_required_and_optional_values(clean_env, monkeypatch):
    clean_env.write_text(
        "GITHUB_TOKEN=gh\nREPOSITORY_OWNER=octo\nREPOSITORY_NAME=widgets\nOPEN_ROUTER_API_KEY=llm\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("MAX_CONCURRENT", "0")
    monkeypatch.setenv("ISSUES_BATCH_SIZE", "not-a-number")
    monkeypatch.setenv("CONFIDENCE_THRESHOLD", "0.7")

    config = PipelineConfig.from_env(clean_env)

    assert config.repo.full_name == "octo/widgets"
    assert config.github_token == "gh"
    assert config.openrouter_api_key == "llm"
    assert config.model == DEFAULT_MODEL
    assert config.max_concurrent == 1
    assert config.batch_size == 10
    assert config.confidence_threshold == 0.7


def test_from_env_requires_repository(clean_env, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "gh")
    monkeypatch.setenv("OPENROUTER_API_KEY", "llm")

    with pytest.raises(RuntimeError, match="REPOSITORY"):
        PipelineConfig.from_env(clean_env)


def test_from_env_requires_github_token(clean_env, monkeypatch):
    monkeypatch.setenv("REPOSITORY_OWNER", "octo")
    monkeypatch.setenv("REPOSITORY_NAME", "widgets")
    monkeypatch.setenv("OPENROUTER_API_KEY", "llm")

    with pytest.raises(RuntimeError, match="GITHUB_TOKEN"):
        PipelineConfig.from_env(clean_env)


def test_resolve_level_accepts_verbose_level_names():
    assert resolve_level("silly") == logging.DEBUG
    assert resolve_level("WARN") == logging.WARNING
    assert resolve_level("fatal") == logging.CRITICAL
    assert resolve_level("loud") == logging.INFO


def test_setup_logging_installs_single_handler():
    root = logging.getLogger()
    previous_handlers = list(root.handlers)
    previous_level = root.level
    try:
        setup_logging("debug")
        setup_logging("debug")

        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG
        assert logging.getLogger("urllib3").level == logging.WARNING
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)

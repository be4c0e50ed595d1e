import argparse
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "src"))

from issue_classifier.config import PipelineConfig
from issue_classifier.log import LOG_LEVELS, setup_logging
from issue_classifier.pipeline import run


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Label last week's open issues that are good first issues"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "info"),
        choices=sorted(LOG_LEVELS),
        help="Logging level",
    )
    parser.add_argument(
        "--env-path",
        default=".env",
        help="Path to .env file",
    )
    parser.add_argument(
        "--lookback-days",
        type=int,
        default=None,
        help="Only consider issues created within this many days",
    )
    parser.add_argument(
        "--max-concurrent",
        type=int,
        default=None,
        help="Maximum in-flight requests per stage",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Issues sent to the classifier per request",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Override OpenRouter model name",
    )

    args = parser.parse_args()
    setup_logging(args.log_level)

    if args.lookback_days is not None:
        os.environ["LOOKBACK_DAYS"] = str(args.lookback_days)
    if args.max_concurrent is not None:
        os.environ["MAX_CONCURRENT"] = str(args.max_concurrent)
    if args.batch_size is not None:
        os.environ["ISSUES_BATCH_SIZE"] = str(args.batch_size)
    if args.model:
        os.environ["OPENROUTER_MODEL"] = args.model

    try:
        config = PipelineConfig.from_env(Path(args.env_path))
        labeled = run(config)
    except Exception:
        logging.getLogger("classify_issues").exception("Issue classification failed")
        return 1

    print(f"labeled={len(labeled)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

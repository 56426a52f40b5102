#!/usr/bin/env python3
"""
Delete old Docker Hub tags until a repository fits its retention policy.

Tags are removed least-recently-updated first until the repository holds at
most KEEP_COUNT tags and/or at most MAX_SIZE_MB megabytes. Tags listed in the
protection file are never deleted.

Every option can also be given through the environment (DOCKER_USERNAME,
DOCKER_PASSWORD, DOCKER_REPOSITORY, KEEP_COUNT, MAX_SIZE_MB, SKIP_TAGS_FILE,
DRY_RUN, REPORT_FILE) or a YAML config file (see config-example.yaml).

Usage examples:
  # Keep the 20 newest tags
  tag-cleaner --repository myorg/myapp --keep-count 20

  # Keep the repository under 2 GB, never touching tags in protected.txt
  tag-cleaner --repository myapp --max-size-mb 2048 --protect-file protected.txt

  # Show what would be deleted without deleting anything
  tag-cleaner --repository myapp --keep-count 5 --dry-run

  # Save a JSON report of the run
  tag-cleaner --repository myapp --keep-count 5 --output reports/cleanup.json
"""

import argparse
import os
import sys
from typing import List, Optional

from tag_cleaner.cleanup import TagCleanup
from tag_cleaner.config_manager import ConfigManager, describe_settings
from tag_cleaner.error_utils import ActionableError
from tag_cleaner.logging_utils import get_logger, log_exception, parse_log_level, setup_logging

logger = get_logger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tag-cleaner",
        description="Delete least-recently-updated Docker Hub tags to enforce count and size limits",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Usage examples:", 1)[1],
    )
    parser.add_argument("--config", help="Path to YAML config file (default: CONFIG_FILE env var or config.yaml)")
    parser.add_argument("--repository", help="Repository as name or namespace/name (env: DOCKER_REPOSITORY)")
    parser.add_argument("--username", help="Docker Hub username (env: DOCKER_USERNAME)")
    parser.add_argument("--keep-count", help="Maximum number of tags to keep (env: KEEP_COUNT)")
    parser.add_argument("--max-size-mb", help="Maximum total size in MB, <= 0 for no limit (env: MAX_SIZE_MB)")
    parser.add_argument("--protect-file", help="File listing tags that must never be deleted (env: SKIP_TAGS_FILE)")
    parser.add_argument(
        "--dry-run", action="store_true", default=None, help="Only report what would be deleted (env: DRY_RUN)"
    )
    parser.add_argument("--output", help="Save a JSON report of the run to this path (env: REPORT_FILE)")
    parser.add_argument("--api-url", help="Docker Hub API base URL (env: DOCKER_HUB_API)")
    parser.add_argument("--log-level", default=None, help="Logging level (env: LOG_LEVEL, default: INFO)")
    parser.add_argument(
        "--print-config", action="store_true", help="Print the resolved configuration and exit without cleaning"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main function. Returns the process exit status."""
    args = parse_arguments(argv)

    try:
        level = parse_log_level(args.log_level or os.environ.get("LOG_LEVEL"))
    except ValueError as e:
        setup_logging()
        logger.error(f"❌ {e}")
        return 1
    setup_logging(level)

    try:
        config = ConfigManager(config_file=args.config)
        settings = config.build_settings(
            {
                "repository": args.repository,
                "username": args.username,
                "keep_count": args.keep_count,
                "max_size_mb": args.max_size_mb,
                "protection_file": args.protect_file,
                "dry_run": args.dry_run,
                "report_path": args.output,
                "api_url": args.api_url,
            }
        )

        if args.print_config:
            print("\n".join(describe_settings(settings)))
            return 0

        TagCleanup(settings).run()
    except ActionableError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        log_exception(logger, "Unexpected error during cleanup", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

# src/lint_pr_reviewer/main.py
import argparse
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv # For local development using .env file

from . import __version__
from .app_auth import GitHubAppAuth
from .errors import ConfigError, ReviewerError
from .models import ReviewRequest
from .plugin_config import ReviewerConfig, load_config
from .request_queue import RequestQueue
from .runner import build_runner

# Global logger for the module
logger = logging.getLogger("lint_pr_reviewer") # Use a named logger


def setup_logging(log_level_str: str):
    """Configures basic logging for the reviewer."""
    numeric_level = getattr(logging, log_level_str.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
        logger.warning(f"Invalid log level '{log_level_str}'. Defaulting to INFO.")

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def make_app_auth(config: ReviewerConfig) -> Optional[GitHubAppAuth]:
    if not config.app_mode:
        return None
    return GitHubAppAuth(config.app_id, config.private_key_path, api_base_url=config.api_base_url)


def run_review(config: ReviewerConfig, request: ReviewRequest, app_auth: Optional[GitHubAppAuth] = None) -> bool:
    """Runs one review. Failures are logged, not raised."""
    try:
        runner = build_runner(config, request, app_auth)
        result = runner.run(request)
    except ReviewerError as e:
        logger.error(f"Review of {request.display_name} failed: {e}", exc_info=True)
        return False

    state = "submitted" if result.submitted else "suppressed"
    logger.info(f"Review of {request.display_name} {state}: {result.verdict.event.value}, "
                f"{len(result.verdict.comments)} new comments "
                f"({result.filtered_findings} of {result.total_findings} issues on changed lines)")
    return True


def serve(config: ReviewerConfig) -> int:
    import uvicorn

    from .server import create_app

    app_auth = make_app_auth(config)
    review_queue: RequestQueue[ReviewRequest] = RequestQueue(
        lambda request: run_review(config, request, app_auth),
        maxsize=config.queue_size,
    )
    review_queue.start()

    host, port = config.host_and_port
    logger.info(f"Starting listening on {host}:{port} (queue size {config.queue_size})")
    try:
        uvicorn.run(create_app(config, review_queue), host=host, port=port, log_level=config.log_level.lower())
    finally:
        logger.info("Shutting down, waiting for the running review to finish.")
        review_queue.shutdown(discard_pending=True)
    return 0


def review_once(config: ReviewerConfig, repository: str, number: int, installation_id: Optional[int]) -> int:
    owner, _, repo = repository.partition("/")
    if not owner or not repo:
        logger.error(f"Unable to parse repository '{repository}', expected OWNER/REPO.")
        return 2
    request = ReviewRequest(owner=owner, repo=repo, number=number, installation_id=installation_id)
    return 0 if run_review(config, request, make_app_auth(config)) else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lint-pr-reviewer",
        description="Review pull requests with golangci-lint findings on the changed lines.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Listen for GitHub webhooks (HOST_ADDR)")

    review = subparsers.add_parser("review", help="Review a single pull request and exit")
    review.add_argument("repository", help="OWNER/REPO")
    review.add_argument("number", type=int, help="Pull request number")
    review.add_argument("--installation-id", type=int, default=None,
                        help="GitHub App installation id (app mode only)")
    return parser


def main_cli(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point. Loads .env for local dev.
    """
    args = build_parser().parse_args(argv)

    if os.path.exists(".env"):
        load_dotenv(override=False)

    try:
        config = load_config()
    except ConfigError as e:
        setup_logging("INFO")
        logger.error(f"Configuration error: {e}")
        return 2

    setup_logging(config.log_level)
    logger.info(f"lint-pr-reviewer {__version__}")

    try:
        if args.command == "serve":
            return serve(config)
        return review_once(config, args.repository, args.number, args.installation_id)
    except KeyboardInterrupt:
        logger.info("Interrupted by user (KeyboardInterrupt).")
        return 130


if __name__ == "__main__":
    sys.exit(main_cli())

# src/lint_pr_reviewer/runner.py
import logging
import os
import shutil
import tempfile
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Mapping, Optional

from . import git_ops
from .app_auth import GitHubAppAuth
from .deduplicator import collect_existing_comments, dedupe_findings
from .diff_parser import build_diff_index, has_relevant_changes, summarize_patch
from .errors import ConfigError, GitError, RunError, RunTimeoutError
from .issue_filter import filter_findings
from .linter import GolangciLint
from .models import AnalyzerResult, PullRequestMeta, ReviewRequest, RunResult
from .plugin_config import ReviewerConfig, merge_linter_options, read_repo_linter_options, write_analyzer_config
from .review_decision import DecisionInput, ReviewState, decide, review_state
from .scm_client import GitHubClient

logger = logging.getLogger(__name__)

WORK_DIR_PREFIX = "lint-pr-reviewer-"
ANALYZER_CONFIG_NAME = "golangci-reviewer.json"


class Deadline:
    """Wall-clock budget of one run."""

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = clock() + seconds if seconds else None

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def check(self, stage: str) -> None:
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise RunTimeoutError(f"run timed out before {stage}")


class ReviewRunner:
    """
    Reviews one pull request: lint the head branch, keep the findings on added
    lines that were not reported before, and submit a single review.

    Running it again on an unchanged pull request adds no comments, because
    everything it would post is already there. Such a run counts as passing:
    with auto-approve on, a redelivered webhook approves a pull request whose
    issues were requested to change by the previous run and are still open as
    comments.

    The run timeout covers every stage. GitHub calls get at most the time
    that is left, and the comment listing checks the deadline before each page.
    """

    def __init__(
        self,
        config: ReviewerConfig,
        scm: GitHubClient,
        analyzer,
        token_provider: Callable[[], str],
        clone: Callable[..., None] = git_ops.clone,
        commit_sha: Callable[[str], str] = git_ops.current_commit_sha,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.scm = scm
        self.analyzer = analyzer
        self._token_provider = token_provider
        self._clone = clone
        self._commit_sha = commit_sha
        self._clock = clock

    @contextmanager
    def _stage(self, name: str, request: ReviewRequest, deadline: Deadline) -> Iterator[None]:
        logger.info(f"[{request.display_name}] {name}")
        try:
            deadline.check(name)
            yield
        except RunError:
            raise
        except Exception as e:
            raise RunError(name, request.display_name, e) from e

    def run(self, request: ReviewRequest) -> RunResult:
        """
        Raises:
            RunError: when any stage fails. Nothing is posted in that case.
        """
        deadline = Deadline(self.config.run_timeout, clock=self._clock)
        owner, repo, number = request.owner, request.repo, request.number

        with self._stage("get pull request", request, deadline):
            pr = self.scm.get_pull_request(owner, repo, number, timeout=deadline.remaining())

        with self._stage("download patch", request, deadline):
            diff_text = self.scm.get_diff(owner, repo, number, timeout=deadline.remaining())

        with self._stage("parse patch", request, deadline):
            diff_index = build_diff_index(diff_text)
            summary = summarize_patch(diff_text)
            relevant = has_relevant_changes(summary, self.config.relevant_patterns)
        logger.info(f"[{request.display_name}] patch touches {len(summary)} files, "
                    f"relevant changes: {relevant}")

        if relevant:
            result = self._analyze(request, pr, deadline)
        else:
            result = AnalyzerResult()
        logger.info(f"[{request.display_name}] golangci-lint reported {len(result.findings)} issues "
                    f"and {len(result.warnings)} warnings")

        filtered = filter_findings(
            result.findings,
            diff_index,
            include_linter_name=self.config.policy.include_linter_name,
            exclude_patterns=self.config.exclude_patterns,
        )

        remaining = filtered
        if filtered:
            def fetch_page(page: int):
                deadline.check(f"review comments page {page}")
                return self.scm.list_review_comments(owner, repo, number, page, timeout=deadline.remaining())

            with self._stage("list review comments", request, deadline):
                existing = collect_existing_comments(fetch_page)
            remaining = dedupe_findings(filtered, existing)

        verdict = decide(
            DecisionInput(
                has_relevant_changes=relevant,
                total_findings=len(result.findings),
                comments=remaining,
                warnings=result.warnings,
            ),
            self.config.policy,
        )
        run_result = RunResult(
            verdict=verdict,
            submitted=False,
            total_findings=len(result.findings),
            filtered_findings=len(filtered),
        )

        if review_state(verdict) == ReviewState.SUPPRESSED:
            logger.info(f"[{request.display_name}] nothing to report, not creating a {verdict.event.value} review")
            return run_result

        with self._stage("create review", request, deadline):
            self.scm.create_review(pr.base.owner, pr.base.repo, pr.number, pr.head.sha, verdict,
                                   timeout=deadline.remaining())
        run_result.submitted = True
        return run_result

    def _analyzer_env(self) -> Mapping[str, str]:
        env = dict(os.environ)
        # golangci-lint must not pick up credentials meant for the reviewer
        for name in ("GITHUB_TOKEN", "GITHUB_PRIVATE_KEY", "GITHUB_WEBHOOK_SECRET"):
            env.pop(name, None)
        return env

    def _analyze(self, request: ReviewRequest, pr: PullRequestMeta, deadline: Deadline) -> AnalyzerResult:
        work_dir = tempfile.mkdtemp(prefix=WORK_DIR_PREFIX)
        logger.debug(f"[{request.display_name}] work directory is {work_dir}")
        try:
            repo_dir = os.path.join(work_dir, "src", pr.head.full_name)
            os.makedirs(os.path.dirname(repo_dir), exist_ok=True)

            with self._stage("clone", request, deadline):
                self._clone(pr.head.clone_url, pr.head.ref, self._token_provider(), repo_dir,
                            timeout=deadline.remaining())
                # the diff and the review's commit_id belong to pr.head.sha
                cloned_sha = self._commit_sha(repo_dir)
                if cloned_sha != pr.head.sha:
                    raise GitError(f"{pr.head.ref} is at {cloned_sha}, expected {pr.head.sha}; "
                                   f"the branch moved after the pull request was fetched")

            with self._stage("prepare linter config", request, deadline):
                options = merge_linter_options(self.config.linter_options, read_repo_linter_options(repo_dir))
                config_path = write_analyzer_config(options, os.path.join(work_dir, ANALYZER_CONFIG_NAME))

            with self._stage("run linter", request, deadline):
                return self.analyzer.run(config_path, repo_dir, self._analyzer_env(), timeout=deadline.remaining())
        finally:
            try:
                shutil.rmtree(work_dir)
            except OSError as e:
                logger.error(f"Unable to delete work directory {work_dir}: {e}")


def build_runner(
    config: ReviewerConfig,
    request: ReviewRequest,
    app_auth: Optional[GitHubAppAuth] = None,
) -> ReviewRunner:
    """
    Wires a ReviewRunner for one request. In GitHub App mode the installation
    token is created on first use and shared by the API client and the clone.
    """
    if config.app_mode:
        if app_auth is None:
            raise ConfigError("GitHub App mode needs an app authenticator")
        if not request.installation_id:
            raise ConfigError(f"no installation id for {request.display_name}")
        cached = {}

        def token_provider() -> str:
            if "token" not in cached:
                cached["token"] = app_auth.get_installation_token(request.installation_id)
            return cached["token"]
    else:
        if not config.scm_token:
            raise ConfigError("GITHUB_TOKEN is not configured")

        def token_provider() -> str:
            return config.scm_token

    scm = GitHubClient(token_provider, api_base_url=config.api_base_url)
    return ReviewRunner(config, scm, GolangciLint(config.analyzer_binary), token_provider)

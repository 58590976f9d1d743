# src/lint_pr_reviewer/git_ops.py
import logging
import os
import subprocess # For git commands
from typing import List, Optional
from urllib.parse import quote, urlparse, urlunparse

from .errors import GitError, RunTimeoutError

logger = logging.getLogger(__name__)


def _authenticated_url(url: str, token: Optional[str]) -> str:
    """Puts the token into an https clone URL. The user name can be anything but empty."""
    if not token:
        return url
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return url
    netloc = f"x-access-token:{quote(token, safe='')}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def _run_git(args: List[str], cwd: Optional[str] = None, timeout: Optional[float] = None,
             redact: Optional[str] = None) -> str:
    cmd = ["git"] + args
    shown = " ".join(cmd)
    if redact:
        shown = shown.replace(redact, "***")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=cwd, timeout=timeout,
                                env=dict(os.environ, GIT_TERMINAL_PROMPT="0"))
    except FileNotFoundError:
        raise GitError("'git' command not found. Ensure Git is installed and in PATH.") from None
    except subprocess.TimeoutExpired:
        raise RunTimeoutError(f"'{shown}' timed out after {timeout:.0f}s") from None

    if result.returncode != 0:
        stderr = result.stderr.strip()
        if redact:
            stderr = stderr.replace(redact, "***")
        raise GitError(f"'{shown}' failed with exit code {result.returncode}: {stderr}")
    return result.stdout


def clone(url: str, ref: str, token: Optional[str], target_dir: str, timeout: Optional[float] = None) -> None:
    """
    Shallow, single-branch clone of `ref` into `target_dir`.
    """
    logger.info(f"Cloning {url} ({ref}) to {target_dir}")
    _run_git(
        ["clone", "--depth", "1", "--single-branch", "--no-tags", "--recurse-submodules",
         "--branch", ref, _authenticated_url(url, token), target_dir],
        timeout=timeout,
        redact=quote(token, safe="") if token else None,
    )


def current_commit_sha(repo_dir: str) -> str:
    return _run_git(["rev-parse", "HEAD"], cwd=repo_dir).strip()

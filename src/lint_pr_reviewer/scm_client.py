# src/lint_pr_reviewer/scm_client.py
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import requests # Using requests library for HTTP calls

from .errors import SCMError
from .models import BranchMeta, ExistingComment, PullRequestMeta, ReviewVerdict

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.github.com"
DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
COMMENTS_PER_PAGE = 100
REQUEST_TIMEOUT = 30


class GitHubClient:
    """
    Thin client for the parts of the GitHub REST API the reviewer needs.
    Every failed call raises SCMError naming the endpoint and status.
    """

    def __init__(
        self,
        token_provider: Callable[[], str],
        api_base_url: str = DEFAULT_API_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self._token_provider = token_provider
        self.api_base_url = api_base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout
        logger.debug(f"GitHub client initialized for base URL: {self.api_base_url}")

    def _request(self, method: str, endpoint: str, params: Optional[Dict] = None, json_data: Optional[Dict] = None,
                 expected_status: Tuple[int, ...] = (200,), accept: Optional[str] = None,
                 timeout: Optional[float] = None) -> requests.Response:
        """
        Helper method to make HTTP requests. `timeout` can only shorten the
        client's own timeout, e.g. to what is left of a run's deadline.
        """
        url = f"{self.api_base_url}{endpoint}"
        request_timeout = self._timeout if timeout is None else min(self._timeout, timeout)
        headers = {
            "Accept": accept or "application/vnd.github+json",
            "Authorization": f"token {self._token_provider()}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

        logger.debug(f"Making GitHub API {method} request to {url} with params {params}")
        try:
            response = self._session.request(method, url, headers=headers, params=params, json=json_data,
                                             timeout=request_timeout)
        except requests.exceptions.RequestException as e:
            raise SCMError(f"GitHub API {method} {endpoint} failed: {e}") from e

        if response.status_code not in expected_status:
            raise SCMError(
                f"GitHub API {method} {endpoint} returned {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _branch_meta(branch: Dict[str, Any], side: str) -> BranchMeta:
        repo = branch.get("repo") or {}
        owner = repo.get("owner") or {}
        values = {
            "owner": owner.get("login"),
            "repo": repo.get("name"),
            "full_name": repo.get("full_name"),
            "clone_url": repo.get("clone_url"),
            "sha": branch.get("sha"),
            "ref": branch.get("ref"),
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise SCMError(f"pull request {side} is missing {', '.join(missing)}")
        return BranchMeta(**values)

    def get_pull_request(self, owner: str, repo: str, number: int,
                         timeout: Optional[float] = None) -> PullRequestMeta:
        """Fetches base/head branch, SHA and clone URL of a pull request."""
        data = self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}", timeout=timeout).json()
        if not isinstance(data, dict):
            raise SCMError(f"unexpected pull request payload for {owner}/{repo}#{number}")
        return PullRequestMeta(
            number=int(data.get("number") or number),
            base=self._branch_meta(data.get("base") or {}, "base"),
            head=self._branch_meta(data.get("head") or {}, "head"),
        )

    def get_diff(self, owner: str, repo: str, number: int, timeout: Optional[float] = None) -> str:
        """Fetches the unified diff of a pull request."""
        response = self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}", accept=DIFF_MEDIA_TYPE,
                                 timeout=timeout)
        logger.info(f"Fetched diff for {owner}/{repo}#{number} (length: {len(response.text)}).")
        return response.text

    def list_review_comments(self, owner: str, repo: str, number: int, page: int = 1,
                             timeout: Optional[float] = None) -> Tuple[List[ExistingComment], Optional[int]]:
        """
        Returns one page of review comments and the number of the next page,
        or None on the last page.
        """
        response = self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls/{number}/comments",
            params={"per_page": COMMENTS_PER_PAGE, "page": page},
            timeout=timeout,
        )
        comments = [
            ExistingComment(path=c.get("path") or "", position=c.get("position"), body=c.get("body") or "")
            for c in response.json()
        ]
        return comments, self._next_page(response)

    @staticmethod
    def _next_page(response: requests.Response) -> Optional[int]:
        next_link = (response.links or {}).get("next")
        if not next_link or not next_link.get("url"):
            return None
        page = parse_qs(urlparse(next_link["url"]).query).get("page")
        try:
            return int(page[0]) if page else None
        except ValueError:
            return None

    def create_review(self, owner: str, repo: str, number: int, commit_id: str,
                      verdict: ReviewVerdict, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Submits a review with all of its comments in one call."""
        payload = verdict.to_payload(commit_id)
        logger.info(f"Creating {verdict.event.value} review with {len(verdict.comments)} comments "
                    f"on {owner}/{repo}#{number}.")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Review payload: {json.dumps(payload, indent=2)}")

        response = self._request("POST", f"/repos/{owner}/{repo}/pulls/{number}/reviews", json_data=payload,
                                 timeout=timeout)
        return response.json()

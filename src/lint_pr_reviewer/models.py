# src/lint_pr_reviewer/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class DiffPosition:
    """
    An added line in a file's diff section.
    """
    line_number: int # 1-based line number in the new version of the file
    hunk_position: int # Lines since the file's first "@@" header; what GitHub calls "position"


# file path -> added lines, in diff order. A present but empty list means the file
# was touched (e.g. renamed or deletions only) without adding lines.
DiffIndex = Dict[str, List[DiffPosition]]


@dataclass(frozen=True)
class Finding:
    """
    One issue as reported by the analyzer.
    """
    linter_name: str
    text: str
    file: str
    line: int # Absolute line number in the checked out file


@dataclass(frozen=True)
class FilteredFinding:
    """
    A finding that sits on an added line, ready to become a review comment.
    """
    finding: Finding
    hunk_position: int
    body: str # Final comment text, including the linter suffix if requested

    @property
    def path(self) -> str:
        return self.finding.file

    def to_comment(self) -> Dict[str, Any]:
        return {"path": self.path, "position": self.hunk_position, "body": self.body}


@dataclass(frozen=True)
class ExistingComment:
    """
    A review comment already attached to the pull request.
    """
    path: str
    position: Optional[int] # None for outdated comments
    body: str


@dataclass(frozen=True)
class ToolWarning:
    tag: str
    text: str


@dataclass
class AnalyzerResult:
    findings: List[Finding] = field(default_factory=list)
    warnings: List[ToolWarning] = field(default_factory=list)


class ReviewEvent(str, Enum):
    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    COMMENT = "COMMENT"


@dataclass
class ReviewVerdict:
    event: ReviewEvent
    body: str
    comments: List[FilteredFinding] = field(default_factory=list)

    def to_payload(self, commit_id: str) -> Dict[str, Any]:
        """Builds the body for GitHub's "create a review" endpoint."""
        payload: Dict[str, Any] = {
            "commit_id": commit_id,
            "event": self.event.value,
            "comments": [c.to_comment() for c in self.comments],
        }
        if self.body:
            payload["body"] = self.body
        return payload


@dataclass(frozen=True)
class BranchMeta:
    owner: str
    repo: str
    full_name: str
    clone_url: str
    sha: str
    ref: str


@dataclass(frozen=True)
class PullRequestMeta:
    number: int
    base: BranchMeta
    head: BranchMeta


@dataclass(frozen=True)
class ReviewRequest:
    """
    Describes one queued review run.
    """
    owner: str
    repo: str
    number: int
    installation_id: Optional[int] = None # Only set in GitHub App mode
    delivery_id: Optional[str] = None # X-GitHub-Delivery of the triggering webhook

    @property
    def display_name(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"


@dataclass
class RunResult:
    verdict: ReviewVerdict
    submitted: bool
    total_findings: int = 0
    filtered_findings: int = 0

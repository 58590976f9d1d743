# src/lint_pr_reviewer/review_decision.py
"""
Turns the outcome of a lint run into a single review verdict.

The decision is an ordered table of guarded rules; the first rule whose guard
holds produces the verdict. Nothing in here does I/O.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Tuple

from .models import FilteredFinding, ReviewEvent, ReviewVerdict, ToolWarning

logger = logging.getLogger(__name__)

DEFAULT_NO_ISSUES_TEXT = "golangci-lint found no issues"
DEFAULT_NO_RELEVANT_CHANGES_TEXT = ""


@dataclass(frozen=True)
class ReviewPolicy:
    auto_approve: bool = True
    auto_request_changes: bool = True
    include_linter_name: bool = True
    no_issues_text: str = DEFAULT_NO_ISSUES_TEXT
    no_relevant_changes_text: str = DEFAULT_NO_RELEVANT_CHANGES_TEXT


@dataclass
class DecisionInput:
    has_relevant_changes: bool
    total_findings: int # Everything the analyzer reported, before filtering
    comments: List[FilteredFinding] = field(default_factory=list) # Filtered and deduplicated
    warnings: List[ToolWarning] = field(default_factory=list)

    @property
    def passing(self) -> bool:
        return not self.comments and not self.warnings


class ReviewState(str, Enum):
    START = "start"
    EVALUATED = "evaluated"
    SUPPRESSED = "suppressed"
    SUBMITTED = "submitted"
    ERROR = "error"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _passing_event(policy: ReviewPolicy) -> ReviewEvent:
    return ReviewEvent.APPROVE if policy.auto_approve else ReviewEvent.COMMENT


def _failing_event(policy: ReviewPolicy) -> ReviewEvent:
    return ReviewEvent.REQUEST_CHANGES if policy.auto_request_changes else ReviewEvent.COMMENT


def _no_relevant_changes(data: DecisionInput, policy: ReviewPolicy) -> ReviewVerdict:
    return ReviewVerdict(event=_passing_event(policy), body=policy.no_relevant_changes_text)


def _passing(data: DecisionInput, policy: ReviewPolicy) -> ReviewVerdict:
    if data.total_findings == 0:
        body = policy.no_issues_text
    else:
        body = (f"golangci-lint found {_plural(data.total_findings, 'issue')}, "
                f"none of them are new in this pull request")
    return ReviewVerdict(event=_passing_event(policy), body=body)


def format_warnings(warnings: List[ToolWarning]) -> str:
    lines = ["golangci-lint reported warnings, the results may be incomplete:"]
    lines.extend(f"- {w.tag}: {w.text}" for w in warnings)
    return "\n".join(lines)


def _failing(data: DecisionInput, policy: ReviewPolicy) -> ReviewVerdict:
    body = f"golangci-lint found {_plural(len(data.comments), 'issue')}"
    if data.warnings:
        body += "\n\n" + format_warnings(data.warnings)
    return ReviewVerdict(event=_failing_event(policy), body=body, comments=list(data.comments))


Rule = Tuple[str, Callable[[DecisionInput], bool], Callable[[DecisionInput, ReviewPolicy], ReviewVerdict]]

RULES: List[Rule] = [
    ("no_relevant_changes", lambda d: not d.has_relevant_changes, _no_relevant_changes),
    ("passing", lambda d: d.passing, _passing),
    ("failing", lambda d: True, _failing),
]


def decide(data: DecisionInput, policy: ReviewPolicy) -> ReviewVerdict:
    """Evaluates RULES in order and returns the verdict of the first match."""
    for name, guard, action in RULES:
        if guard(data):
            verdict = action(data, policy)
            logger.debug(f"Review rule '{name}' matched, event {verdict.event.value}")
            return verdict
    raise AssertionError("the last review rule must always match")


def review_state(verdict: ReviewVerdict) -> ReviewState:
    """
    SUPPRESSED when there is nothing to say: an empty body on anything but an
    approval. Otherwise EVALUATED, i.e. ready to be submitted.
    """
    if verdict.event != ReviewEvent.APPROVE and not verdict.body:
        return ReviewState.SUPPRESSED
    return ReviewState.EVALUATED

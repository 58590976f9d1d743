# src/lint_pr_reviewer/issue_filter.py
import logging
from typing import Iterable, List, Optional

from .models import DiffIndex, FilteredFinding, Finding
from .utils.file_filter import build_path_spec, normalize_path

logger = logging.getLogger(__name__)


def render_comment_body(finding: Finding, include_linter_name: bool) -> str:
    """Returns the review comment text for a finding."""
    if include_linter_name and finding.linter_name:
        return f"{finding.text} (from {finding.linter_name})"
    return finding.text


def filter_findings(
    findings: Iterable[Finding],
    diff_index: DiffIndex,
    include_linter_name: bool = True,
    exclude_patterns: Optional[Iterable[str]] = None,
) -> List[FilteredFinding]:
    """
    Keeps the findings that sit on lines added by the patch.

    Findings in files the patch does not touch, or on unchanged lines, are dropped.
    Output order follows input order. Several findings may share one position
    (e.g. two linters flagging the same line); all of them are kept.

    Args:
        findings: Analyzer output
        diff_index: Result of build_diff_index() for the pull request's diff
        include_linter_name: Append " (from <linter>)" to each comment body
        exclude_patterns: Git-style patterns of paths that never get comments

    Returns:
        The kept findings, annotated with their diff position and comment body.
    """
    exclude_spec = build_path_spec(exclude_patterns)
    kept: List[FilteredFinding] = []

    for finding in findings:
        path = normalize_path(finding.file)
        if exclude_spec and exclude_spec.match_file(path):
            logger.debug(f"Dropping finding in excluded path {path}:{finding.line}")
            continue

        positions = diff_index.get(path)
        if positions is None:
            logger.debug(f"Dropping finding in {path}:{finding.line}, file is not part of the patch")
            continue

        match = next((p for p in positions if p.line_number == finding.line), None)
        if match is None:
            logger.debug(f"Dropping finding in {path}:{finding.line}, line was not added by the patch")
            continue

        if path != finding.file:
            finding = Finding(linter_name=finding.linter_name, text=finding.text, file=path, line=finding.line)
        kept.append(FilteredFinding(
            finding=finding,
            hunk_position=match.hunk_position,
            body=render_comment_body(finding, include_linter_name),
        ))

    return kept

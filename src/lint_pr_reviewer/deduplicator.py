# src/lint_pr_reviewer/deduplicator.py
import logging
from typing import Callable, Iterable, List, Optional, Set, Tuple

from .models import ExistingComment, FilteredFinding

logger = logging.getLogger(__name__)

# page -> (comments on that page, next page or None)
CommentPageFetcher = Callable[[int], Tuple[List[ExistingComment], Optional[int]]]

MAX_COMMENT_PAGES = 100


def collect_existing_comments(fetch_page: CommentPageFetcher, first_page: int = 1) -> List[ExistingComment]:
    """
    Fetches every page of existing review comments.

    Deduplication has to see the complete set; a finding may match a comment on
    any page.
    """
    comments: List[ExistingComment] = []
    page: Optional[int] = first_page
    seen_pages: Set[int] = set()

    while page is not None:
        if page in seen_pages or len(seen_pages) >= MAX_COMMENT_PAGES:
            logger.warning(f"Stopping comment pagination at page {page} after {len(seen_pages)} pages.")
            break
        seen_pages.add(page)
        page_comments, page = fetch_page(page)
        comments.extend(page_comments)

    logger.debug(f"Collected {len(comments)} existing review comments from {len(seen_pages)} pages.")
    return comments


def dedupe_findings(
    findings: Iterable[FilteredFinding],
    existing_comments: Iterable[ExistingComment],
) -> List[FilteredFinding]:
    """
    Drops findings that were already posted as a review comment with the same
    path, position and body. Repeats within `findings` itself are dropped too.
    Order of the remaining findings is kept.
    """
    posted = {(c.path, c.position, c.body) for c in existing_comments}
    remaining: List[FilteredFinding] = []
    dropped = 0

    for finding in findings:
        key = (finding.path, finding.hunk_position, finding.body)
        if key in posted:
            dropped += 1
            continue
        posted.add(key)
        remaining.append(finding)

    if dropped:
        logger.info(f"Skipping {dropped} findings that were already reported.")
    return remaining

# src/lint_pr_reviewer/diff_parser.py
import io
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from .errors import DiffParseError
from .models import DiffIndex, DiffPosition
from .utils.file_filter import filter_files_by_patterns

logger = logging.getLogger(__name__)

NEW_FILE_MARKER = "+++ "
HUNK_HEADER_MARKER = "@@"
DEV_NULL = "/dev/null"

# Only the start of the new-file range matters: "@@ -a,b +c,d @@"
_HUNK_NEW_START_RE = re.compile(r"^@@ -\S+ \+([^\s,]+)")


def _parse_new_file_path(line: str) -> Optional[str]:
    """
    Extracts the path from a "+++ b/<path>" line. Returns None for "/dev/null"
    (deleted file) or when there is no path at all.
    """
    path = line[len(NEW_FILE_MARKER):]
    # Some diff tools append a tab and a timestamp
    path = path.split("\t", 1)[0].strip()
    if not path or path == DEV_NULL:
        return None
    if path.startswith("b/"):
        path = path[2:]
    return path or None


def _parse_hunk_new_start(line: str, diff_line_no: int) -> int:
    match = _HUNK_NEW_START_RE.match(line)
    if not match:
        raise DiffParseError(f"malformed hunk header {line!r}", diff_line_no)
    try:
        return int(match.group(1))
    except ValueError:
        raise DiffParseError(f"non-numeric range start in hunk header {line!r}", diff_line_no) from None


def build_diff_index(diff: Union[str, Iterable[str]]) -> DiffIndex:
    """
    Maps every added line of a unified diff to its line number in the new file
    and its position in the file's diff section.

    GitHub addresses review comments by "position": the number of lines below the
    first "@@" header of the file, counting further hunk headers too. The counter
    restarts with every "+++" file marker.

    Args:
        diff: The diff text, or any iterable of its lines (e.g. an open file).

    Returns:
        path -> list of DiffPosition for the added lines, in diff order. Files that
        show up in the diff without added lines map to an empty list.

    Raises:
        DiffParseError: if a hunk header cannot be parsed.
    """
    # split on "\n" only, Go source may contain form feeds or U+2028
    lines = io.StringIO(diff) if isinstance(diff, str) else diff

    index: DiffIndex = {}
    current_file: Optional[str] = None
    positions: List[DiffPosition] = []
    line_no = 0
    hunk_pos = -1

    for diff_line_no, raw_line in enumerate(lines, start=1):
        line = raw_line.rstrip("\r\n")

        if line.startswith(NEW_FILE_MARKER) and line[len(NEW_FILE_MARKER):].strip():
            if current_file is not None:
                index[current_file] = positions
            current_file = _parse_new_file_path(line)
            positions = []
            line_no = 0
            hunk_pos = -1
            continue

        line_no += 1
        hunk_pos += 1

        if line.startswith(HUNK_HEADER_MARKER):
            line_no = _parse_hunk_new_start(line, diff_line_no) - 1
        elif line.startswith("-"):
            # not part of the new file
            line_no -= 1
        elif line.startswith("\\"):
            # "\ No newline at end of file"
            line_no -= 1
        elif line.startswith("+"):
            if current_file is not None:
                positions.append(DiffPosition(line_number=line_no, hunk_position=hunk_pos))

    if current_file is not None:
        index[current_file] = positions

    logger.debug(f"Indexed {len(index)} files, {sum(len(p) for p in index.values())} added lines.")
    return index


@dataclass(frozen=True)
class PatchedFileSummary:
    path: str
    added: int
    removed: int
    is_removed_file: bool = False


def summarize_patch(diff_text: str) -> List[PatchedFileSummary]:
    """
    Lists the files touched by a patch with their added/removed line counts.
    """
    if not diff_text:
        return []
    try:
        patch_set = PatchSet(io.StringIO(diff_text))
    except UnidiffParseError as e:
        raise DiffParseError(f"unable to parse patch: {e}") from e

    summary = []
    for patched_file in patch_set:
        summary.append(PatchedFileSummary(
            path=patched_file.path,
            added=patched_file.added,
            removed=patched_file.removed,
            is_removed_file=patched_file.is_removed_file,
        ))
    return summary


def has_relevant_changes(summary: List[PatchedFileSummary], relevant_patterns: Iterable[str]) -> bool:
    """
    True if any changed line of the patch is in a file the analyzer cares about.
    An empty pattern list treats every file as relevant.
    """
    changed = [f.path for f in summary if f.added or f.removed]
    relevant = filter_files_by_patterns(changed, include_patterns=list(relevant_patterns))
    if relevant:
        logger.debug(f"Relevant changed files: {relevant}")
    return bool(relevant)

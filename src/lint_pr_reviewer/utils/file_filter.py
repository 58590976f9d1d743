from typing import Iterable, List, Optional
from pathspec import PathSpec


def build_path_spec(patterns: Optional[Iterable[str]]) -> Optional[PathSpec]:
    """
    Compiles git-style patterns (e.g. "*.go", "vendor/**") into a PathSpec.
    Returns None when there is nothing to match against.
    """
    cleaned = [p.strip() for p in (patterns or []) if p and p.strip()]
    if not cleaned:
        return None
    return PathSpec.from_lines("gitwildmatch", cleaned)


def normalize_path(path: str) -> str:
    """Strips the "./" prefix some tools put in front of relative paths."""
    while path.startswith("./"):
        path = path[2:]
    return path


def filter_files_by_patterns(files: Iterable[str], include_patterns: Optional[Iterable[str]] = None) -> List[str]:
    """
    Filter file paths by include patterns.

    Args:
        files: File paths, relative to the repository root
        include_patterns: Keep only paths matching one of these (all paths if empty)

    Returns:
        The remaining paths, in input order
    """
    include_spec = build_path_spec(include_patterns)
    if include_spec is None:
        return list(files)
    return [f for f in files if include_spec.match_file(normalize_path(f))]

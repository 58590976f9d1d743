# src/lint_pr_reviewer/errors.py
from typing import Optional


class ReviewerError(Exception):
    """Base class for all errors raised by the reviewer."""


class ConfigError(ReviewerError):
    pass


class DiffParseError(ReviewerError):
    """The patch could not be parsed (e.g. a malformed hunk header)."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        if line_number is not None:
            message = f"{message} (diff line {line_number})"
        super().__init__(message)
        self.line_number = line_number


class AnalyzerError(ReviewerError):
    pass


class GitError(ReviewerError):
    pass


class SCMError(ReviewerError):
    """A GitHub API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RunTimeoutError(ReviewerError):
    pass


class RunError(ReviewerError):
    """
    Fatal-to-run failure. Carries the stage that failed and the pull request
    it was working on; the original exception is chained as __cause__.
    """

    def __init__(self, stage: str, pull_request: str, cause: BaseException):
        super().__init__(f"{stage} failed for {pull_request}: {cause}")
        self.stage = stage
        self.pull_request = pull_request
        self.cause = cause


class QueueFullError(ReviewerError):
    """The request queue is at capacity. Callers may retry later."""


class QueueClosedError(ReviewerError):
    pass


class WireError(ReviewerError):
    """
    Error reported over HTTP. Only the public message is sent to the caller,
    the private message goes to the log.
    """

    def __init__(self, status_code: int = 500, public_message: str = "error", private_message: str = ""):
        super().__init__(private_message or public_message)
        self.status_code = status_code
        self.public_message = public_message
        self.private_message = private_message

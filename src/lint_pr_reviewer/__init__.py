# src/lint_pr_reviewer/__init__.py
"""Runs golangci-lint on pull requests and reviews only the lines they change."""

__version__ = "0.3.0"

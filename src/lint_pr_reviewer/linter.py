# src/lint_pr_reviewer/linter.py
import json
import logging
import subprocess
from typing import Any, Dict, List, Mapping, Optional

from .errors import AnalyzerError, RunTimeoutError
from .models import AnalyzerResult, Finding, ToolWarning

logger = logging.getLogger(__name__)

# golangci-lint prints this when it cannot type-check the packages at all
BAD_LOAD_MARKER = "failed to load program with go/packages"


def parse_golangci_output(output: str) -> Dict[str, Any]:
    try:
        data = json.loads(output)
    except ValueError as e:
        raise AnalyzerError(f"invalid golangci-lint output json: {e}: {output[:500]}") from e
    if not isinstance(data, dict):
        raise AnalyzerError(f"unexpected golangci-lint output: {output[:500]}")
    return data


def result_from_json(data: Mapping[str, Any]) -> AnalyzerResult:
    """Converts golangci-lint's JSON report into findings and warnings."""
    findings: List[Finding] = []
    for issue in data.get("Issues") or []:
        pos = issue.get("Pos") or {}
        filename = pos.get("Filename")
        line = pos.get("Line")
        if not filename or not isinstance(line, int):
            logger.warning(f"Ignoring issue without position: {issue.get('Text')!r}")
            continue
        findings.append(Finding(
            linter_name=issue.get("FromLinter") or "",
            text=issue.get("Text") or "",
            file=filename,
            line=line,
        ))

    report = data.get("Report") or {}
    warnings = [
        ToolWarning(tag=w.get("Tag") or "", text=w.get("Text") or "")
        for w in report.get("Warnings") or []
    ]
    return AnalyzerResult(findings=findings, warnings=warnings)


class GolangciLint:
    """
    Runs golangci-lint as a subprocess and reads its JSON report.
    """

    def __init__(self, binary: str = "golangci-lint"):
        self.binary = binary

    def build_command(self, config_path: str) -> List[str]:
        return [
            self.binary,
            "run",
            f"--config={config_path}",
            "--out-format=json",
            "--issues-exit-code=0",
            "--new=false",
            "--max-issues-per-linter=0",
            "--max-same-issues=0",
        ]

    def run(self, config_path: str, working_dir: str, env: Optional[Mapping[str, str]] = None,
            timeout: Optional[float] = None) -> AnalyzerResult:
        """
        Raises:
            AnalyzerError: if golangci-lint fails without a readable report
            RunTimeoutError: if it does not finish within `timeout` seconds
        """
        cmd = self.build_command(config_path)
        logger.info(f"Running linter {cmd} in {working_dir}")
        try:
            proc = subprocess.run(cmd, cwd=working_dir, env=dict(env) if env is not None else None,
                                  capture_output=True, text=True, check=False, timeout=timeout)
        except FileNotFoundError:
            raise AnalyzerError(f"'{self.binary}' not found. Ensure golangci-lint is installed and in PATH.") from None
        except subprocess.TimeoutExpired:
            raise RunTimeoutError(f"golangci-lint timed out after {timeout:.0f}s") from None

        if proc.returncode == 0:
            return result_from_json(parse_golangci_output(proc.stdout))

        stderr = proc.stderr.strip()
        try:
            data = parse_golangci_output(proc.stdout)
        except AnalyzerError:
            if BAD_LOAD_MARKER in stderr:
                raise AnalyzerError(stderr[stderr.index(BAD_LOAD_MARKER):]) from None
            raise AnalyzerError(f"golangci-lint exited with code {proc.returncode}: {stderr[:1000]}") from None

        report_error = (data.get("Report") or {}).get("Error")
        if report_error:
            raise AnalyzerError(f"can't run golangci-lint: {report_error}")

        # A readable report despite the exit code: keep it, but flag it.
        result = result_from_json(data)
        result.warnings.append(ToolWarning(tag="exit", text=f"golangci-lint exited with code {proc.returncode}"))
        logger.warning(f"golangci-lint exited with code {proc.returncode} but produced a report: {stderr[:500]}")
        return result

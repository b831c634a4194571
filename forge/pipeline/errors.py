"""
Failure taxonomy for pipeline runs.

Every fatal error carries the process exit code to report and a concrete
remediation line (a command to re-run or the names that are missing).
CopyError is the one recoverable kind: deployment collects them and keeps going.
"""
import sys
from typing import List, Optional, Sequence


def process_exit_code(returncode: int) -> int:
    """Map a child return code to a shell exit status (signal N -> 128 + N)."""
    if returncode < 0:
        return 128 - returncode
    return returncode


class PipelineError(Exception):
    exit_code = 1

    def __init__(self, message: str, remediation: Optional[str] = None):
        super().__init__(message)
        self.remediation = remediation


class ConfigurationError(PipelineError):
    pass


class DependencyError(PipelineError):
    def __init__(self, message: str, missing: Sequence[str] = (), remediation: Optional[str] = None):
        super().__init__(message, remediation)
        self.missing: List[str] = list(missing)


class WorkerExecutionError(PipelineError):
    def __init__(self, stage: str, returncode: int, command: str):
        super().__init__(f"{stage} worker failed with exit code {returncode}",
                         remediation=f"Re-run manually:\n  {command}")
        self.stage = stage
        self.returncode = returncode
        self.exit_code = process_exit_code(returncode)
        self.command = command


class PostconditionError(PipelineError):
    def __init__(self, missing: Sequence[str], remediation: Optional[str] = None):
        names = list(missing)
        super().__init__("Artifacts still missing after worker run: " + ", ".join(names), remediation)
        self.missing = names


class SchemaError(PipelineError):
    def __init__(self, artifact: str, detail: str):
        super().__init__(f"Artifact {artifact} failed schema validation: {detail}",
                         remediation=f"Delete {artifact} and re-run so the producing step regenerates it")
        self.artifact = artifact
        self.detail = detail


class CopyError(PipelineError):
    def __init__(self, source: str, dest: str, reason: str):
        super().__init__(f"Failed to copy {source} -> {dest}: {reason}")
        self.source = source
        self.dest = dest
        self.reason = reason


def report_failure(err: PipelineError, stream=None) -> int:
    """Print an error and its remediation; return the exit code to use."""
    stream = stream or sys.stderr
    print(f"\n[error] {err}", file=stream)
    if err.remediation:
        print(err.remediation, file=stream)
    return err.exit_code

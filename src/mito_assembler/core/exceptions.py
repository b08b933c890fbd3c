"""
Exception hierarchy for MitoAssembler.
Operational failures abort a run; QC threshold misses are never raised.
"""

from typing import List, Optional


class PipelineError(Exception):
    """
    Base class for all operational failures of the assembly pipeline.
    """


class ConfigError(PipelineError):
    """
    Raised when a configuration value is out of its allowed range.
    """


class InputNotFound(PipelineError):
    """
    Raised when a reads file, reference or output directory is unusable.
    """


class ToolMissing(PipelineError):
    """
    Raised when one or more required external binaries are not on PATH.
    """

    def __init__(self, tools: List[str]):
        self.tools = list(tools)
        super().__init__(f"Required tool(s) not found: {', '.join(self.tools)}")


class StageFailed(PipelineError):
    """
    Raised when an external tool invocation exits with a non-zero status.
    """

    def __init__(self, stage: str, command: str, returncode: int, stderr: Optional[str] = None):
        self.stage = stage
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Stage '{stage}' failed (exit {returncode}): {command}")


class ManifestError(PipelineError):
    """
    Raised when a batch sample manifest is malformed.
    """

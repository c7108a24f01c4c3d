# errors.py
from __future__ import annotations

from dataclasses import dataclass


class SlurmCIError(Exception):
    """Base class for every error raised by slurmci."""
    pass


class ConfigError(SlurmCIError):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass
class StructuralInputError(SlurmCIError):
    """
    Malformed input: an event payload, a workflow file or a step.

    Always recovered locally; the offending unit is skipped.
    """
    kind: str            # "event" | "workflow" | "step"
    source: str | None
    message: str

    def __str__(self) -> str:
        where = f" ({self.source})" if self.source else ""
        return f"invalid {self.kind}{where}: {self.message}"


@dataclass
class ResourceAcquisitionError(SlurmCIError):
    """Clone or temp directory failure. Aborts the current event only."""
    resource: str
    message: str

    def __str__(self) -> str:
        return f"could not acquire {self.resource}: {self.message}"


@dataclass
class TranslationError(SlurmCIError):
    """A job could not be lowered to a script. Aborts that job only."""
    job: str
    step: str | None
    message: str

    def __str__(self) -> str:
        lines = [f"cannot translate job '{self.job}': {self.message}"]
        if self.step:
            lines.append(f"step={self.step}")
        return "\n".join(lines)


@dataclass
class SubmissionError(SlurmCIError):
    """The scheduler rejected a job or could not be reached."""
    job: str
    message: str

    def __str__(self) -> str:
        return f"[{self.job}] submission failed: {self.message}"

# agent/models.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Submitted:
    """slurmrestd accepted the job."""
    job_id: Optional[str] = None

    @property
    def status(self) -> str:
        return "submitted"


@dataclass(frozen=True)
class Rejected:
    """slurmrestd answered with a non-2xx status."""
    reason: str
    status_code: Optional[int] = None

    @property
    def status(self) -> str:
        return "rejected"


@dataclass(frozen=True)
class TransportFailure:
    """The request could not be completed (network error, unreadable body)."""
    reason: str

    @property
    def status(self) -> str:
        return "transport_failure"


DispatchOutcome = Union[Submitted, Rejected, TransportFailure]


@dataclass(frozen=True)
class JobReport:
    """What happened to one job of one event."""
    workflow: str
    job_name: str
    outcome: Optional[DispatchOutcome] = None  # None: never reached the scheduler
    error: Optional[str] = None
    source: Optional[str] = None  # workflow file path; unique where names may repeat

    @property
    def key(self) -> str:
        return f"{self.source or self.workflow}/{self.job_name}"

    @property
    def status(self) -> str:
        if self.outcome is None:
            return "not_translated"
        return self.outcome.status

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Submitted)

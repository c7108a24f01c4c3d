# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union


# ---------------------------------------------------------------------
# Push event
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Repository:
    """Repository identity carried by a push event."""
    name: str
    full_name: str
    clone_url: str


@dataclass(frozen=True)
class PushEvent:
    """
    A GitHub push notification.

    Only `ref` and `repository` drive the pipeline. The rest is kept for
    logging; `raw` holds the untouched payload so unread fields survive.
    """
    ref: str
    repository: Repository
    after: Optional[str] = None
    pusher: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


# ---------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class RunStep:
    """A literal shell command."""
    name: Optional[str]
    run: str
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        # never taken from `run`: the label is expanded by the batch shell
        return self.name or "run"


@dataclass(frozen=True)
class UsesStep:
    """
    A reusable action, referenced as `owner/repo[@ref]`.

    `run` is only set when the source step carried both keys; the action
    wins and the command is ignored.
    """
    name: Optional[str]
    uses: str
    with_: Dict[str, str] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    run: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.uses


@dataclass(frozen=True)
class MalformedStep:
    """A step with neither `run` nor `uses`."""
    name: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or "<unnamed>"


Step = Union[RunStep, UsesStep, MalformedStep]


@dataclass(frozen=True)
class Job:
    """A workflow job bound to a Slurm partition."""
    runs_on: str
    steps: Tuple[Step, ...]
    name: Optional[str] = None


@dataclass(frozen=True)
class PushTrigger:
    branches: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Workflow:
    """
    A parsed `.github/workflows/*.yml` file.

    `jobs` keeps the order of the file.
    """
    jobs: Dict[str, Job]
    push: Optional[PushTrigger] = None
    name: Optional[str] = None
    source: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.source or "<workflow>"


# ---------------------------------------------------------------------
# Translation output
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class RenderedScript:
    """An sbatch script ready for submission."""
    workflow: str
    job_name: str
    text: str

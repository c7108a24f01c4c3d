# actions.py
from __future__ import annotations

from typing import Dict, Tuple

from .model import UsesStep, Workflow


def action_repo(uses: str) -> str:
    """`owner/repo@v1` -> `owner/repo`. The ref is not pinned."""
    return uses.split("@", 1)[0]


def collect_actions(workflow: Workflow) -> Tuple[str, ...]:
    """
    Unique action repositories referenced anywhere in the workflow.

    Ordered by first occurrence so rendered scripts stay reproducible.
    """
    seen: Dict[str, None] = {}
    for job in workflow.jobs.values():
        for step in job.steps:
            if isinstance(step, UsesStep):
                seen.setdefault(action_repo(step.uses), None)
    return tuple(seen)

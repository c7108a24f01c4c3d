# triggers.py
from __future__ import annotations

from typing import Optional

from .model import PushEvent, Workflow


def branch_from_ref(ref: str) -> Optional[str]:
    """
    Return the branch of a `refs/heads/<branch>` ref, or None for anything else.

    Only the first path component after `heads` is returned, so
    `refs/heads/feature/x` yields `feature`.
    """
    parts = ref.split("/")
    if len(parts) < 3 or parts[1] != "heads":
        return None
    return parts[2]


def should_trigger(workflow: Workflow, event: PushEvent) -> bool:
    """True iff the workflow's push trigger lists the pushed branch (exact match)."""
    branch = branch_from_ref(event.ref)
    if branch is None:
        return False
    if workflow.push is None:
        return False
    return branch in workflow.push.branches

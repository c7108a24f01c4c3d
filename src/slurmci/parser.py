# parser.py
from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union

import yaml

from .errors import StructuralInputError
from .model import (
    Job,
    MalformedStep,
    PushEvent,
    PushTrigger,
    Repository,
    RunStep,
    Step,
    UsesStep,
    Workflow,
)


# ---------------------------------------------------------------------
# Push event
# ---------------------------------------------------------------------

def parse_event(payload: Union[bytes, str, Dict[str, Any]]) -> PushEvent:
    """
    Build a PushEvent from a queue payload.

    Accepts raw bytes (as delivered by the queue), a JSON string, or an
    already-decoded dict.

    Raises:
        StructuralInputError: payload is not JSON or lacks `ref`/`repository`
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StructuralInputError("event", None, f"payload is not UTF-8: {e}")

    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise StructuralInputError("event", None, f"payload is not JSON: {e}")
    else:
        data = payload

    if not isinstance(data, dict):
        raise StructuralInputError("event", None, "payload must be a JSON object")

    ref = data.get("ref")
    repo = data.get("repository")
    if not isinstance(ref, str):
        raise StructuralInputError("event", None, "missing 'ref'")
    if not isinstance(repo, dict):
        raise StructuralInputError("event", None, "missing 'repository'")

    try:
        repository = Repository(
            name=str(repo["name"]),
            full_name=str(repo["full_name"]),
            clone_url=str(repo["clone_url"]),
        )
    except KeyError as e:
        raise StructuralInputError("event", None, f"repository is missing {e}")

    pusher = data.get("pusher")
    return PushEvent(
        ref=ref,
        repository=repository,
        after=data.get("after"),
        pusher=pusher.get("name") if isinstance(pusher, dict) else None,
        raw=data,
    )


# ---------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------

def _scalar(value: Any) -> str:
    # YAML gives us bools/ints/floats; the runner environment only knows strings
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _string_map(value: Any, what: str, source: Optional[str]) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise StructuralInputError("workflow", source, f"'{what}' must be a mapping")
    return {str(k): _scalar(v) for k, v in value.items()}


def _parse_step(raw: Any, source: Optional[str]) -> Step:
    if not isinstance(raw, dict):
        return MalformedStep(name=None, raw={"value": raw})

    name = raw.get("name")
    name = str(name) if name is not None else None
    env = _string_map(raw.get("env"), "env", source)
    uses = raw.get("uses")
    run = raw.get("run")

    if uses is not None:
        return UsesStep(
            name=name,
            uses=str(uses),
            with_=_string_map(raw.get("with"), "with", source),
            env=env,
            run=str(run) if run is not None else None,
        )
    if run is not None:
        return RunStep(name=name, run=str(run), env=env)
    return MalformedStep(name=name, raw=dict(raw))


def _parse_job(job_name: str, raw: Any, source: Optional[str]) -> Job:
    if not isinstance(raw, dict):
        raise StructuralInputError("workflow", source, f"job '{job_name}' must be a mapping")
    runs_on = raw.get("runs-on")
    if not isinstance(runs_on, str) or not runs_on:
        raise StructuralInputError("workflow", source, f"job '{job_name}' has no 'runs-on'")
    steps = raw.get("steps")
    if not isinstance(steps, list):
        raise StructuralInputError("workflow", source, f"job '{job_name}' has no 'steps' list")

    name = raw.get("name")
    return Job(
        runs_on=runs_on,
        steps=tuple(_parse_step(s, source) for s in steps),
        name=str(name) if name is not None else None,
    )


def _parse_push_trigger(on: Any, source: Optional[str]) -> Optional[PushTrigger]:
    # on: push | on: [push, pull_request] | on: {push: {branches: [...]}}
    if on is None:
        return None
    if isinstance(on, str):
        return PushTrigger() if on == "push" else None
    if isinstance(on, list):
        return PushTrigger() if "push" in on else None
    if not isinstance(on, dict):
        raise StructuralInputError("workflow", source, "'on' must be a string, list or mapping")
    if "push" not in on:
        return None

    push = on["push"]
    if push is None:
        return PushTrigger()
    if not isinstance(push, dict):
        raise StructuralInputError("workflow", source, "'on.push' must be a mapping")
    branches = push.get("branches") or []
    if isinstance(branches, str):
        branches = [branches]
    if not isinstance(branches, list):
        raise StructuralInputError("workflow", source, "'on.push.branches' must be a list")
    return PushTrigger(branches=tuple(str(b) for b in branches))


def parse_workflow(text: str, source: Optional[str] = None) -> Workflow:
    """
    Parse one workflow YAML document.

    Args:
        text: file contents
        source: path used in diagnostics

    Raises:
        StructuralInputError: invalid YAML or a shape we cannot use. A step
            with neither `run` nor `uses` does NOT raise here; it becomes a
            MalformedStep and only its job is dropped at translation time.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise StructuralInputError("workflow", source, f"invalid YAML: {e}")

    if not isinstance(data, dict):
        raise StructuralInputError("workflow", source, "document must be a mapping")

    # YAML 1.1 reads a bare `on` key as boolean True
    on = data["on"] if "on" in data else data.get(True)

    jobs_raw = data.get("jobs")
    if not isinstance(jobs_raw, dict):
        raise StructuralInputError("workflow", source, "no 'jobs' defined")

    jobs = {str(name): _parse_job(str(name), raw, source) for name, raw in jobs_raw.items()}
    name = data.get("name")

    return Workflow(
        jobs=jobs,
        push=_parse_push_trigger(on, source),
        name=str(name) if name is not None else None,
        source=source,
    )

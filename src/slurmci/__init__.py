from .model import PushEvent, Repository, Workflow, Job, RunStep, UsesStep, MalformedStep, RenderedScript
from .parser import parse_event, parse_workflow
from .triggers import should_trigger
from .actions import collect_actions
from .script import render_script

__version__ = "0.1.0"

__all__ = [
    "PushEvent",
    "Repository",
    "Workflow",
    "Job",
    "RunStep",
    "UsesStep",
    "MalformedStep",
    "RenderedScript",
    "parse_event",
    "parse_workflow",
    "should_trigger",
    "collect_actions",
    "render_script",
]

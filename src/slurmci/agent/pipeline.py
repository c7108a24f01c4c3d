# agent/pipeline.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from slurmci.actions import collect_actions
from slurmci.errors import ResourceAcquisitionError, StructuralInputError, SubmissionError, TranslationError
from slurmci.git_facts.git import fetch_workflow_files
from slurmci.model import Job, PushEvent, Workflow
from slurmci.parser import parse_event, parse_workflow
from slurmci.script import DEFAULT_ACTIONS_BASE_URL, render_script
from slurmci.triggers import branch_from_ref, should_trigger
from slurmci.ui.console import Console, get_console

from .models import JobReport, Rejected, Submitted
from .slurm_client import SlurmClient

# (clone_url, ref) -> {path: contents}
WorkflowFetcher = Callable[[str, Optional[str]], Dict[str, str]]


@dataclass(frozen=True)
class _JobUnit:
    workflow: Workflow
    job_name: str
    job: Job
    actions: Tuple[str, ...]


class EventPipeline:
    """
    Turns one push event into zero or more slurm submissions.

    Received -> repo cloned -> workflows parsed -> triggers evaluated ->
    per job: translated -> dispatched.

    Every failure is local to its unit: a bad payload or clone drops the
    event, a bad file drops that workflow, a bad step or a refused
    submission drops that job. Nothing raised here leaves process().
    """

    def __init__(
        self,
        client: SlurmClient,
        github_token: str,
        fetcher: WorkflowFetcher = fetch_workflow_files,
        max_workers: int = 1,
        action_base_url: str = DEFAULT_ACTIONS_BASE_URL,
        console: Optional[Console] = None,
    ):
        """
        Args:
            client: submits rendered scripts
            github_token: exported to every step of every job
            fetcher: returns workflow file contents for a repository
            max_workers: jobs of one event submitted in parallel
            action_base_url: where action repos are cloned from on the node
            console: diagnostics sink (defaults to the global console)
        """
        self.client = client
        self.github_token = github_token
        self.fetcher = fetcher
        self.max_workers = max(1, max_workers)
        self.action_base_url = action_base_url
        self._console = console

    @property
    def console(self) -> Console:
        return self._console or get_console()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def parse_workflows(self, files: Dict[str, str]) -> List[Workflow]:
        """Parse every file, skipping (and reporting) the ones that fail."""
        workflows: List[Workflow] = []
        for path, text in files.items():
            try:
                workflows.append(parse_workflow(text, source=path))
            except StructuralInputError as e:
                self.console.print_error("Skipping workflow file", str(e))
        return workflows

    def select_workflows(self, workflows: List[Workflow], event: PushEvent) -> List[Workflow]:
        branch = branch_from_ref(event.ref)
        selected: List[Workflow] = []
        for wf in workflows:
            if should_trigger(wf, event):
                selected.append(wf)
                self.console.print_workflow_triggered(wf.label, len(wf.jobs))
            elif wf.push is None:
                self.console.print_workflow_skipped(wf.label, "no push trigger")
            else:
                self.console.print_workflow_skipped(
                    wf.label, f"branch {branch!r} not in {list(wf.push.branches)}"
                )
        return selected

    def run_job(self, unit: _JobUnit, event: PushEvent) -> JobReport:
        """Translate and submit one job. Returns a report, never raises for expected failures."""
        label = unit.workflow.label
        source = unit.workflow.source
        name = f"{label}/{unit.job_name}"

        try:
            script = render_script(
                unit.job,
                unit.job_name,
                event,
                self.github_token,
                unit.actions,
                workflow=label,
                action_base_url=self.action_base_url,
                console=self.console,
            )
        except TranslationError as e:
            self.console.print_job_failed(name, str(e), hint="Every step needs either 'run' or 'uses'.")
            return JobReport(workflow=label, job_name=unit.job_name, error=str(e), source=source)

        self.console.print_debug(f"[{name}] rendered {len(script.text)} bytes for partition {unit.job.runs_on}")
        outcome = self.client.submit(script)

        if isinstance(outcome, Submitted):
            self.console.print_job_submitted(name, outcome.job_id)
            return JobReport(workflow=label, job_name=unit.job_name, outcome=outcome, source=source)

        err = SubmissionError(job=name, message=outcome.reason)
        hint = None
        if isinstance(outcome, Rejected) and outcome.status_code in (401, 403):
            hint = "Check SLURMRESTD_USER / SLURMRESTD_TOKEN."
        self.console.print_job_failed(name, str(err), hint=hint)
        return JobReport(workflow=label, job_name=unit.job_name, outcome=outcome, error=str(err), source=source)

    def dispatch(self, units: List[_JobUnit], event: PushEvent) -> List[JobReport]:
        """Run every job unit; reports come back in unit order."""
        reports: List[JobReport] = []
        if not units:
            return reports

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self.run_job, unit, event) for unit in units]

            for unit, fut in zip(units, futures):
                try:
                    reports.append(fut.result())
                except Exception as e:
                    # one broken job must not take its siblings down
                    self.console.print_job_failed(f"{unit.workflow.label}/{unit.job_name}", str(e))
                    self.console.print_exception(e)
                    reports.append(JobReport(
                        workflow=unit.workflow.label,
                        job_name=unit.job_name,
                        error=str(e),
                        source=unit.workflow.source,
                    ))
        return reports

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def process(self, payload: Union[bytes, str, dict]) -> List[JobReport]:
        """
        Process one queue payload end to end.

        Returns:
            One JobReport per job of every triggered workflow; empty when the
            event was dropped or nothing matched.
        """
        console = self.console

        try:
            event = parse_event(payload)
        except StructuralInputError as e:
            console.print_error("Skipping event", str(e))
            return []

        console.print_event_received(event.repository.full_name, event.ref, event.after)

        try:
            files = self.fetcher(event.repository.clone_url, event.ref)
        except ResourceAcquisitionError as e:
            console.print_error(
                "Skipping event",
                str(e),
                suggestion="Check that the repository is reachable from the worker.",
            )
            return []

        if not files:
            console.print_info("No workflow files found")
            return []

        workflows = self.parse_workflows(files)
        selected = self.select_workflows(workflows, event)
        if not selected:
            console.print_info("No workflows to run")
            return []

        units: List[_JobUnit] = []
        for wf in selected:
            actions = collect_actions(wf)
            for job_name, job in wf.jobs.items():
                units.append(_JobUnit(workflow=wf, job_name=job_name, job=job, actions=actions))

        reports = self.dispatch(units, event)
        console.print_event_summary({r.key: r.status for r in reports})
        return reports

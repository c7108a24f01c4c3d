"""Console output formatting utilities for slurmci."""

from __future__ import annotations

import sys
from typing import Optional


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_worker_started(
        self,
        queue: str,
        slurmrestd: str,
        max_workers: int,
    ) -> None:
        """Print worker start information."""
        print("\nWORKER STARTED")
        print(f"Queue: {queue}")
        print(f"Slurmrestd: {slurmrestd}")
        print(f"Dispatch workers: {max_workers}")
        print()

    def print_event_received(self, repository: str, ref: str, after: Optional[str] = None) -> None:
        """Print push event header."""
        print("\nEVENT RECEIVED")
        print(f"Repository: {repository}")
        print(f"Ref: {ref}")
        if after:
            print(f"Commit: {after[:12]}")

    def print_workflow_skipped(self, workflow: str, reason: str) -> None:
        """Print a workflow that will not run."""
        print(f"  {workflow} (skipped: {reason})")

    def print_workflow_triggered(self, workflow: str, job_count: int) -> None:
        """Print a workflow selected for dispatch."""
        print(f"  {workflow} (triggered, {job_count} job(s))")

    def print_job_submitted(self, name: str, job_id: Optional[str]) -> None:
        """Print successful submission."""
        print(f"JOB SUBMITTED: {name}")
        if job_id is not None:
            print(f"Slurm job id: {job_id}")

    def print_job_failed(
        self,
        name: str,
        reason: str,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print a job that could not be translated or submitted.

        Args:
            name: Job name (workflow/job)
            reason: Failure reason/error message
            hint: Optional hint for operator
        """
        print(f"JOB FAILED: {name}", file=sys.stderr)
        if hint:
            print(f"Hint: {hint}", file=sys.stderr)
        if self.debug:
            print(f"Error details: {reason}", file=sys.stderr)
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split('\n')[0] if reason else "Unknown error"
            print(f"Error: {error_line}", file=sys.stderr)

    def print_event_summary(self, results: dict[str, str]) -> None:
        """Print per-job outcome for one event."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        if not results:
            print("  (no jobs dispatched)")
        for job, status in results.items():
            print(f"  {job}: {status.upper()}")

    def print_warning(self, message: str) -> None:
        """Print a non-fatal data-quality warning."""
        print(f"WARNING: {message}", file=sys.stderr)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console

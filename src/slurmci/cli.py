# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from slurmci.actions import collect_actions
from slurmci.errors import ConfigError, SlurmCIError, TranslationError
from slurmci.parser import parse_event, parse_workflow
from slurmci.script import DEFAULT_ACTIONS_BASE_URL, render_script
from slurmci.settings import DEFAULT_QUEUE_NAME, DEFAULT_REDIS_URL, Settings
from slurmci.triggers import should_trigger
from slurmci.ui.console import Console, set_console, get_console


def _read_file(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        get_console().print_error("Cannot read file", f"{path}: {e}")
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """slurmci: run GitHub workflow jobs on a Slurm cluster."""
    # Initialize console with debug flag
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("--max-workers", default=None, type=int, help="Jobs of one event submitted in parallel (overrides DISPATCH_WORKERS)")
@click.pass_context
def worker(ctx, max_workers):
    """Consume push events from the queue and submit their jobs to Slurm."""
    from slurmci.agent.agent import run_worker

    console = get_console()

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        console.print_error(
            "Invalid configuration",
            str(e),
            suggestion="Set GITHUB_TOKEN, SLURMRESTD_URL, SLURMRESTD_USER and SLURMRESTD_TOKEN.",
        )
        sys.exit(1)

    try:
        run_worker(settings, max_workers)
    except KeyboardInterrupt:
        console.print_info("\nWorker stopped by user")
        sys.exit(0)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@click.argument("workflow_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--event", "event_file", required=True, type=click.Path(exists=True, dir_okay=False), help="Push event JSON file")
@click.option("--job", "job_names", multiple=True, help="Only render these jobs (repeatable)")
@click.option("--token", default="${GITHUB_TOKEN}", show_default=True, help="Token text written into the script")
@click.option("--actions-base-url", default=DEFAULT_ACTIONS_BASE_URL, show_default=True, help="Where actions are cloned from")
@click.option("--check-trigger/--no-check-trigger", default=False, help="Render nothing if the event does not trigger the workflow")
def render(workflow_file, event_file, job_names, token, actions_base_url, check_trigger):
    """Print the sbatch scripts a workflow would produce, without submitting."""
    console = get_console()

    try:
        event = parse_event(_read_file(event_file))
        workflow = parse_workflow(_read_file(workflow_file), source=workflow_file)
    except SlurmCIError as e:
        console.print_error("Invalid input", str(e))
        sys.exit(1)

    if check_trigger and not should_trigger(workflow, event):
        console.print_info(f"{workflow.label}: not triggered by {event.ref}")
        return

    unknown = [name for name in job_names if name not in workflow.jobs]
    if unknown:
        console.print_error(
            "Unknown job",
            f"{', '.join(unknown)} not in {workflow.label}",
            details=[f"Known jobs: {', '.join(workflow.jobs)}"],
        )
        sys.exit(1)

    actions = collect_actions(workflow)
    failed = False
    for job_name, job in workflow.jobs.items():
        if job_names and job_name not in job_names:
            continue
        try:
            script = render_script(
                job,
                job_name,
                event,
                token,
                actions,
                workflow=workflow.label,
                action_base_url=actions_base_url,
            )
        except TranslationError as e:
            console.print_job_failed(f"{workflow.label}/{job_name}", str(e))
            failed = True
            continue
        console.print_header(f"{workflow.label}/{job_name}")
        click.echo(script.text)

    if failed:
        sys.exit(1)


@cli.command()
@click.argument("event_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--redis-url", envvar="REDIS_URL", default=DEFAULT_REDIS_URL, show_default=True)
@click.option("--queue", "queue_name", envvar="QUEUE_NAME", default=DEFAULT_QUEUE_NAME, show_default=True)
def submit(event_file, redis_url, queue_name):
    """Publish a push event JSON file onto the queue (replay tool)."""
    import redis
    from slurmci.agent.queue import EventQueue

    console = get_console()
    raw = Path(event_file).read_bytes()

    try:
        event = parse_event(raw)
    except SlurmCIError as e:
        console.print_error("Invalid event", str(e))
        sys.exit(1)

    queue = EventQueue.from_url(redis_url, queue_name)
    try:
        length = queue.publish(raw)
    except redis.exceptions.RedisError as e:
        console.print_error(
            "Publish failed",
            str(e),
            suggestion="Check --redis-url and broker availability.",
        )
        sys.exit(1)
    finally:
        queue.close()

    console.print_info(f"Queued {event.repository.full_name} {event.ref} on {queue_name} (length {length})")


def main():
    cli()


if __name__ == "__main__":
    main()

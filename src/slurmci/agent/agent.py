# agent/agent.py
from __future__ import annotations

import signal
import time
from typing import Optional

import redis

from slurmci.settings import Settings
from slurmci.ui.console import get_console

from .pipeline import EventPipeline
from .queue import EventQueue
from .slurm_client import SlurmClient


class Worker:
    """Consumes push events from the queue and runs each through the pipeline."""

    def __init__(
        self,
        queue: EventQueue,
        pipeline: EventPipeline,
        poll_timeout: int = 5,
        retry_interval: int = 5,
        install_signal_handlers: bool = True,
    ):
        """
        Initialize worker.

        Args:
            queue: source of event payloads
            pipeline: processes one payload
            poll_timeout: seconds to block on the queue per poll
            retry_interval: seconds to wait after a broker error
            install_signal_handlers: stop cleanly on SIGINT/SIGTERM
        """
        self.queue = queue
        self.pipeline = pipeline
        self.poll_timeout = poll_timeout
        self.retry_interval = retry_interval
        self.running = True
        self.processed = 0

        # Setup signal handlers for graceful shutdown
        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        console = get_console()
        console.print_info(f"\nReceived signal {signum}, shutting down after the current event...")
        self.running = False

    def run_once(self) -> bool:
        """
        Poll once and process at most one event.

        Returns:
            True if an event was taken off the queue
        """
        payload = self.queue.next_event(timeout=self.poll_timeout)
        if payload is None:
            return False
        self.pipeline.process(payload)
        self.processed += 1
        return True

    def run(self, max_events: Optional[int] = None) -> None:
        """Run the worker loop until stopped (or `max_events` were processed)."""
        console = get_console()

        while self.running:
            if max_events is not None and self.processed >= max_events:
                break
            try:
                self.run_once()
            except KeyboardInterrupt:
                console.print_info("\nInterrupted by user")
                break
            except redis.exceptions.RedisError as e:
                console.print_error(
                    "Queue error",
                    str(e),
                    suggestion="Check REDIS_URL and broker availability.",
                )
                # Wait before retrying on broker errors
                time.sleep(self.retry_interval)
            except Exception as e:
                # the event is dropped; there is no replay
                console.print_error("Event processing failed", str(e))
                console.print_exception(e)

        self.queue.close()
        console.print_info("Worker stopped.")


def build_worker(settings: Settings, max_workers: Optional[int] = None) -> Worker:
    """Wire queue, slurm client and pipeline from settings."""
    client = SlurmClient(
        settings.slurmrestd_url,
        settings.slurmrestd_user,
        settings.slurmrestd_token,
        api_version=settings.slurmrestd_api_version,
        timeout=settings.request_timeout,
    )
    pipeline = EventPipeline(
        client,
        settings.github_token,
        max_workers=max_workers or settings.dispatch_workers,
        action_base_url=settings.actions_base_url,
    )
    queue = EventQueue.from_url(settings.redis_url, settings.queue_name)
    return Worker(queue, pipeline, poll_timeout=settings.poll_timeout)


def run_worker(settings: Settings, max_workers: Optional[int] = None) -> None:
    """
    Run the slurmci worker loop.

    Args:
        settings: worker configuration
        max_workers: overrides settings.dispatch_workers
    """
    worker = build_worker(settings, max_workers)
    console = get_console()
    console.print_worker_started(
        queue=settings.queue_name,
        slurmrestd=worker.pipeline.client.submit_url,
        max_workers=worker.pipeline.max_workers,
    )
    # fail fast on a wrong REDIS_URL instead of looping on connection errors
    worker.queue.ping()
    worker.run()

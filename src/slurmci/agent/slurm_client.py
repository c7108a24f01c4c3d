# agent/slurm_client.py
from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.request
from typing import Optional
from urllib.parse import urljoin

from slurmci.model import RenderedScript
from slurmci.script import SAFE_PATH

from .models import DispatchOutcome, Rejected, Submitted, TransportFailure

DEFAULT_API_VERSION = "v0.0.39"
JOB_WORKING_DIRECTORY = "/home/slurm"


class SlurmClient:
    """HTTP client for the slurmrestd job submission endpoint."""

    def __init__(
        self,
        base_url: str,
        user: str,
        token: str,
        api_version: str = DEFAULT_API_VERSION,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: slurmrestd base URL (e.g., "http://slurm:6820")
            user: value of X-SLURM-USER-NAME
            token: value of X-SLURM-USER-TOKEN
            api_version: REST API version segment of the path
            timeout: socket timeout in seconds; None blocks until the
                server answers
        """
        # Ensure base_url doesn't end with /
        self.base_url = base_url.rstrip("/")
        self.user = user
        self.token = token
        self.api_version = api_version
        self.timeout = timeout

    @property
    def submit_url(self) -> str:
        return urljoin(self.base_url + "/", f"slurm/{self.api_version}/job/submit")

    def build_request(self, script: RenderedScript) -> urllib.request.Request:
        body = {
            "job": {
                "script": script.text,
                "environment": [f"PATH={SAFE_PATH}"],
                "current_working_directory": JOB_WORKING_DIRECTORY,
            }
        }
        headers = {
            "Content-Type": "application/json",
            "X-SLURM-USER-NAME": self.user,
            "X-SLURM-USER-TOKEN": self.token,
        }
        return urllib.request.Request(
            self.submit_url,
            data=json.dumps(body).encode("utf-8"),
            headers=headers,
            method="POST",
        )

    def submit(self, script: RenderedScript) -> DispatchOutcome:
        """
        Submit one rendered script. Never raises for HTTP or network problems.

        Returns:
            Submitted: 2xx and the body could be read
            Rejected: any non-2xx status
            TransportFailure: connection/DNS/timeout error, or a 2xx whose
                body could not be read
        """
        req = self.build_request(script)

        try:
            response = urllib.request.urlopen(req, timeout=self.timeout)
        except urllib.error.HTTPError as e:
            try:
                error_body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            except (OSError, http.client.HTTPException):
                error_body = ""
            reason = f"{e.code} {e.reason}"
            if error_body:
                reason = f"{reason}. {error_body}"
            return Rejected(reason=reason, status_code=e.code)
        except urllib.error.URLError as e:
            return TransportFailure(reason=f"Network error: {e.reason}")
        except (OSError, http.client.HTTPException) as e:
            return TransportFailure(reason=f"Network error: {e}")

        with response:
            status = response.status
            try:
                response_data = response.read().decode("utf-8")
            except (OSError, http.client.HTTPException, UnicodeDecodeError) as e:
                return TransportFailure(reason=f"Failed to read body (status {status}): {e}")

        if not 200 <= status < 300:
            return Rejected(reason=f"{status} {response_data}".strip(), status_code=status)

        return Submitted(job_id=_job_id_from_body(response_data))


def _job_id_from_body(body: str) -> Optional[str]:
    # slurmrestd answers {"job_id": 42, ...}; anything else still counts as accepted
    if not body:
        return None
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return None
    if isinstance(data, dict) and data.get("job_id") is not None:
        return str(data["job_id"])
    return None

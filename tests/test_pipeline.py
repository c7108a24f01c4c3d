"""End-to-end tests for the event pipeline against a slurmrestd stub."""

import json
from unittest.mock import MagicMock

import pytest

from slurmci.agent.models import JobReport, Rejected, Submitted
from slurmci.agent.pipeline import EventPipeline
from slurmci.agent.slurm_client import SlurmClient
from slurmci.errors import ResourceAcquisitionError


HELLO = """
on:
  push:
    branches: [main]
jobs:
  build:
    runs-on: small
    steps:
      - run: "echo hi"
"""

TWO_JOBS = """
name: CI
on:
  push:
    branches: [main]
jobs:
  build:
    runs-on: small
    steps:
      - run: make
  test:
    runs-on: small
    steps:
      - run: make test
"""

WITH_ACTION = """
on:
  push:
    branches: [main]
jobs:
  build:
    runs-on: small
    steps:
      - uses: "org/tool@v1"
        with:
          token: abc
"""

ONE_BAD_JOB = """
name: CI
on:
  push:
    branches: [main]
jobs:
  broken:
    runs-on: small
    steps:
      - run: ls
      - name: neither run nor uses
  fine:
    runs-on: small
    steps:
      - run: ls
"""


def _fetcher(files):
    calls = []

    def fetch(clone_url, ref):
        calls.append((clone_url, ref))
        return dict(files)

    fetch.calls = calls
    return fetch


@pytest.fixture
def pipeline_for(slurm_stub):
    def _make(files, **kwargs):
        client = SlurmClient(slurm_stub.url, "slurm", "secret")
        return EventPipeline(client, "ghp_token", fetcher=_fetcher(files), **kwargs)

    return _make


def _payload(data) -> bytes:
    return json.dumps(data).encode("utf-8")


class TestScenarios:
    def test_matching_push_submits_one_script(self, pipeline_for, slurm_stub, make_payload):
        """Scenario A."""
        pipeline = pipeline_for({".github/workflows/hello.yml": HELLO})
        reports = pipeline.process(_payload(make_payload("refs/heads/main")))

        assert len(slurm_stub.requests) == 1
        script = slurm_stub.scripts[0]
        assert "#SBATCH --partition=small" in script
        assert 'bash -c "echo hi"' in script
        assert len(reports) == 1
        assert reports[0].outcome == Submitted(job_id="42")
        assert reports[0].job_name == "build"

    def test_other_branch_submits_nothing(self, pipeline_for, slurm_stub, make_payload, capsys):
        """Scenario B."""
        pipeline = pipeline_for({".github/workflows/hello.yml": HELLO})
        reports = pipeline.process(_payload(make_payload("refs/heads/dev")))

        assert reports == []
        assert slurm_stub.requests == []
        out = capsys.readouterr()
        assert "No workflows to run" in out.out
        assert "ERROR" not in out.err

    def test_action_reference(self, pipeline_for, slurm_stub, make_payload):
        """Scenario C."""
        pipeline = pipeline_for({".github/workflows/tool.yml": WITH_ACTION})
        pipeline.process(_payload(make_payload()))

        script = slurm_stub.scripts[0]
        assert 'export REPOS=("org/tool")' in script
        assert "INPUT_TOKEN=abc" in script
        assert "/tmp/hello_build/actions_cache/org/tool/dist/index.js" in script
        assert "actions_cache/org/tool@v1" not in script

    def test_rejection_does_not_stop_siblings(self, pipeline_for, slurm_stub, make_payload):
        """Scenario D."""

        def responder(body):
            if "#SBATCH --job-name=build\n" in body["job"]["script"]:
                return 500, {"errors": [{"error": "boom"}]}
            return 200, {"job_id": 43}

        slurm_stub.responder = responder
        pipeline = pipeline_for({".github/workflows/ci.yml": TWO_JOBS})
        reports = pipeline.process(_payload(make_payload()))

        assert len(slurm_stub.requests) == 2
        by_job = {r.job_name: r for r in reports}
        assert isinstance(by_job["build"].outcome, Rejected)
        assert by_job["build"].outcome.status_code == 500
        assert by_job["test"].outcome == Submitted(job_id="43")


class TestIsolation:
    def test_malformed_step_only_drops_its_job(self, pipeline_for, slurm_stub, make_payload):
        pipeline = pipeline_for({".github/workflows/ci.yml": ONE_BAD_JOB})
        reports = pipeline.process(_payload(make_payload()))

        assert len(slurm_stub.requests) == 1
        assert "#SBATCH --job-name=fine" in slurm_stub.scripts[0]
        by_job = {r.job_name: r for r in reports}
        assert by_job["broken"].outcome is None
        assert by_job["broken"].status == "not_translated"
        assert "neither 'run' nor 'uses'" in by_job["broken"].error
        assert by_job["fine"].ok

    def test_unparseable_file_is_skipped(self, pipeline_for, slurm_stub, make_payload, capsys):
        pipeline = pipeline_for({
            ".github/workflows/a-broken.yml": "on: [push\n",
            ".github/workflows/hello.yml": HELLO,
        })
        reports = pipeline.process(_payload(make_payload()))

        assert [r.job_name for r in reports] == ["build"]
        assert "a-broken.yml" in capsys.readouterr().err

    def test_malformed_payload_is_dropped(self, pipeline_for, slurm_stub, capsys):
        pipeline = pipeline_for({".github/workflows/hello.yml": HELLO})
        assert pipeline.process(b"{not json") == []
        assert pipeline.fetcher.calls == []
        assert "Skipping event" in capsys.readouterr().err

    def test_clone_failure_drops_event(self, make_payload, capsys):
        client = MagicMock()
        fetcher = MagicMock(side_effect=ResourceAcquisitionError("repository", "git clone failed"))
        pipeline = EventPipeline(client, "tok", fetcher=fetcher)

        assert pipeline.process(_payload(make_payload())) == []
        client.submit.assert_not_called()
        assert "git clone failed" in capsys.readouterr().err

    def test_no_workflow_files(self, pipeline_for, slurm_stub, make_payload, capsys):
        pipeline = pipeline_for({})
        assert pipeline.process(_payload(make_payload())) == []
        assert "No workflow files found" in capsys.readouterr().out

    def test_unexpected_error_in_one_job(self, make_payload):
        client = MagicMock()
        client.submit.side_effect = [RuntimeError("bug"), MagicMock(spec=Submitted, job_id="1")]
        pipeline = EventPipeline(client, "tok", fetcher=_fetcher({"ci.yml": TWO_JOBS}))
        reports = pipeline.process(_payload(make_payload()))

        assert [r.job_name for r in reports] == ["build", "test"]
        assert reports[0].error == "bug"
        assert client.submit.call_count == 2

    def test_fetcher_receives_clone_url_and_ref(self, pipeline_for, make_payload):
        pipeline = pipeline_for({})
        pipeline.process(_payload(make_payload("refs/heads/main")))
        assert pipeline.fetcher.calls == [("https://github.com/octo/hello.git", "refs/heads/main")]


class TestParallelDispatch:
    def test_reports_keep_job_order(self, pipeline_for, slurm_stub, make_payload):
        pipeline = pipeline_for({".github/workflows/ci.yml": TWO_JOBS}, max_workers=4)
        reports = pipeline.process(_payload(make_payload()))

        assert [r.job_name for r in reports] == ["build", "test"]
        assert all(r.ok for r in reports)
        assert sorted(s.split("\n")[1] for s in slurm_stub.scripts) == [
            "#SBATCH --job-name=build",
            "#SBATCH --job-name=test",
        ]

    def test_each_job_gets_its_own_workspace(self, pipeline_for, slurm_stub, make_payload):
        pipeline = pipeline_for({".github/workflows/ci.yml": TWO_JOBS}, max_workers=2)
        pipeline.process(_payload(make_payload()))

        work_dirs = {line for s in slurm_stub.scripts for line in s.splitlines() if line.startswith("export WORK_DIR=")}
        assert work_dirs == {
            'export WORK_DIR="/tmp/hello_build_${SLURM_JOB_ID}"',
            'export WORK_DIR="/tmp/hello_test_${SLURM_JOB_ID}"',
        }


class TestSummary:
    def test_same_workflow_name_in_two_files(self, pipeline_for, slurm_stub, make_payload, capsys):
        pipeline = pipeline_for({
            ".github/workflows/a.yml": TWO_JOBS,
            ".github/workflows/b.yml": TWO_JOBS,
        })
        reports = pipeline.process(_payload(make_payload()))

        assert len(slurm_stub.requests) == 4
        assert [r.key for r in reports] == [
            ".github/workflows/a.yml/build",
            ".github/workflows/a.yml/test",
            ".github/workflows/b.yml/build",
            ".github/workflows/b.yml/test",
        ]
        out = capsys.readouterr().out
        assert "  .github/workflows/a.yml/build: SUBMITTED" in out
        assert "  .github/workflows/b.yml/build: SUBMITTED" in out

    def test_key_falls_back_to_workflow_label(self):
        assert JobReport(workflow="CI", job_name="build").key == "CI/build"

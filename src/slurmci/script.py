# script.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .errors import TranslationError
from .model import Job, MalformedStep, PushEvent, RenderedScript, RunStep, Step, UsesStep
from .actions import action_repo
from .ui.console import Console, get_console

# ---------------------------------------------------------------------
# Lowering of one workflow job into an sbatch script:
#
#   1. #SBATCH directives
#   2. WORK_DIR / ACTIONS_CACHE_DIR declarations
#   3. cleanup() trapped on EXIT (keeps the original exit code)
#   4. one-time staging of every action repo into the cache
#   5. one srun block per step, in order
#
# Values are pasted in verbatim. Nothing is quoted or escaped, so `run`
# text and `with` values keep their shell meaning (multi-word inputs,
# $VARS expanded on the node).
# ---------------------------------------------------------------------

SAFE_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin:/snap/bin"
DEFAULT_ACTIONS_BASE_URL = "https://github.com"
ACTION_ENTRYPOINT = "dist/index.js"
NODE_BIN = "/usr/bin/node"


def _cache_dir(repo_name: str, job_name: str) -> str:
    return f"/tmp/{repo_name}_{job_name}/actions_cache"


def _directives(job: Job, job_name: str, repo_name: str) -> str:
    return (
        "#!/bin/bash\n"
        f"#SBATCH --job-name={job_name}\n"
        "#SBATCH --ntasks=1\n"
        f"#SBATCH --partition={job.runs_on}\n"
        "#SBATCH --nodes=1\n"
        f"#SBATCH --output={repo_name}_{job_name}_%j.log\n"
        f"#SBATCH --error={repo_name}_{job_name}_%j.err\n"
        "\n"
        "set -e\n"
    )


def _workspace(job_name: str, repo_name: str, actions: Sequence[str]) -> str:
    repos = " ".join(f'"{a}"' for a in actions)
    return (
        "\n"
        f'export WORK_DIR="/tmp/{repo_name}_{job_name}_${{SLURM_JOB_ID}}"\n'
        f"export REPOS=({repos})\n"
        f"export ACTIONS_CACHE_DIR={_cache_dir(repo_name, job_name)}\n"
        "export NUM_TASKS=${#REPOS[@]}\n"
        'export REPOS_STR="${REPOS[*]}"\n'
        "\n"
        "mkdir -p $WORK_DIR\n"
    )


_CLEANUP = """
cleanup() {
    local exit_code=$?
    echo ""
    echo "Cleanup"
    cd /
    rm -rf $WORK_DIR
    rm -rf $ACTIONS_CACHE_DIR

    echo ""
    echo "=========================================="
    echo "Workflow completed at: $(date)"
    echo "=========================================="
    exit $exit_code
}

trap cleanup EXIT
"""


def _staging(action_base_url: str) -> str:
    base = action_base_url.rstrip("/")
    return (
        "\n"
        'echo "Setting up third party actions"\n'
        "\n"
        "mkdir -p $ACTIONS_CACHE_DIR\n"
        "\n"
        "srun --ntasks=1 bash -c '\n"
        '    cd "$ACTIONS_CACHE_DIR"\n'
        '    IFS=" " read -r -a REPOS <<< "$REPOS_STR"\n'
        "\n"
        '    for i in "${REPOS[@]}"; do\n'
        '        echo "Setting up third party action: $i"\n'
        "        mkdir -p $i\n"
        "        pushd $i\n"
        f'        git clone "{base}/$i" .\n'
        "        popd\n"
        "    done\n"
        "'\n"
    )


def _exports(event: PushEvent, token: str, extra: Iterable[str]) -> str:
    pairs: List[str] = [
        "GITHUB_WORKSPACE=$WORK_DIR",
        f"GITHUB_REPOSITORY={event.repository.full_name}",
        f"GITHUB_REF={event.ref}",
        f"GITHUB_TOKEN={token}",
        # actions/checkout reads the token from its input, not GITHUB_TOKEN
        f"INPUT_TOKEN={token}",
        f'PATH="{SAFE_PATH}"',
        "RUNNER_TEMP=/tmp",
    ]
    pairs.extend(extra)
    return ",".join(pairs)


def _input_name(key: str) -> str:
    return "INPUT_" + key.replace(" ", "_").upper()


def _env_pairs(env: Dict[str, str]) -> List[str]:
    return [f"{k}={v}" for k, v in env.items()]


def _step_block(
    step: Step,
    job_name: str,
    event: PushEvent,
    token: str,
    console: Console,
) -> str:
    if isinstance(step, MalformedStep):
        raise TranslationError(
            job=job_name,
            step=step.display_name,
            message="step has neither 'run' nor 'uses'",
        )

    block = f'\necho "Running step: {step.display_name}"\n'

    if isinstance(step, UsesStep):
        if step.run is not None:
            console.print_warning(
                f"[{job_name}] step '{step.display_name}' has both 'uses' and 'run'; using 'uses'"
            )
        extra = [f"{_input_name(k)}={v}" for k, v in step.with_.items()]
        extra.extend(_env_pairs(step.env))
        entrypoint = f"{_cache_dir(event.repository.name, job_name)}/{action_repo(step.uses)}/{ACTION_ENTRYPOINT}"
        block += f"srun --chdir=$WORK_DIR --export={_exports(event, token, extra)}  {NODE_BIN} {entrypoint}\n"
    elif isinstance(step, RunStep):
        extra = _env_pairs(step.env)
        block += f'srun --chdir=$WORK_DIR --export={_exports(event, token, extra)}  bash -c "{step.run}"\n'
    else:
        raise TranslationError(job=job_name, step=None, message=f"unknown step type {type(step).__name__}")

    return block


def render_script(
    job: Job,
    job_name: str,
    event: PushEvent,
    token: str,
    actions: Sequence[str] = (),
    *,
    workflow: Optional[str] = None,
    action_base_url: str = DEFAULT_ACTIONS_BASE_URL,
    console: Optional[Console] = None,
) -> RenderedScript:
    """
    Render one job as an sbatch script.

    Args:
        job: the job definition
        job_name: key of the job in its workflow
        event: push event that triggered it
        token: GitHub token exported to every step
        actions: action repos (owner/repo) to stage, see collect_actions()
        workflow: workflow label recorded on the result
        action_base_url: where action repos are cloned from
        console: receives data-quality warnings

    Returns:
        RenderedScript (same inputs always give the same text)

    Raises:
        TranslationError: a step has neither `run` nor `uses`. No partial
            script is produced for the job.
    """
    console = console or get_console()
    repo_name = event.repository.name

    # render every step first so a bad step abandons the job before anything is kept
    steps = [_step_block(step, job_name, event, token, console) for step in job.steps]

    text = "".join([
        _directives(job, job_name, repo_name),
        _workspace(job_name, repo_name, actions),
        _CLEANUP,
        _staging(action_base_url),
        *steps,
    ])

    return RenderedScript(
        workflow=workflow or "<workflow>",
        job_name=job_name,
        text=text,
    )

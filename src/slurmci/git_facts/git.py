# git.py
# Small, focused wrapper around the Git CLI.
# All repository access of the worker goes through here so the pipeline
# only ever sees file contents, never a checkout.

from __future__ import annotations

import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from slurmci.errors import ResourceAcquisitionError
from slurmci.ui.console import get_console

WORKFLOWS_DIR = Path(".github") / "workflows"
TEMPDIR_PREFIX = "slurmci-"


def _git(args: List[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["clone", url, dest])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: git exited non-zero
        FileNotFoundError: git is not installed
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.PIPE,
    )
    return out.strip()


def branch_ref_name(ref: Optional[str]) -> Optional[str]:
    """
    Full branch name of a `refs/heads/...` ref, slashes included.

    Returns None for tags and anything else so the clone falls back to the
    default branch.
    """
    if ref and ref.startswith("refs/heads/") and len(ref) > len("refs/heads/"):
        return ref[len("refs/heads/"):]
    return None


def clone(repo_url: str, dest: Path, ref: Optional[str] = None) -> Path:
    """
    Shallow-clone `repo_url` into `dest`.

    Args:
        repo_url: Git repository URL
        dest: empty target directory
        ref: pushed ref; branch refs are checked out directly

    Raises:
        ResourceAcquisitionError: git is missing or the clone failed
    """
    args = ["clone", "--depth", "1"]
    branch = branch_ref_name(ref)
    if branch:
        args += ["--branch", branch]
    args += [repo_url, str(dest)]

    try:
        _git(args)
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise ResourceAcquisitionError("repository", f"git clone {repo_url} failed: {stderr or e}")
    except FileNotFoundError:
        raise ResourceAcquisitionError("repository", "git command not found. Please install Git.")
    return dest


def read_workflow_files(repo_root: Path) -> Dict[str, str]:
    """
    Contents of every file under `.github/workflows/`, keyed by relative path.

    Sorted by path. Unreadable files are reported and left out.
    """
    workflows_dir = repo_root / WORKFLOWS_DIR
    if not workflows_dir.is_dir():
        return {}

    files: Dict[str, str] = {}
    for path in sorted(workflows_dir.glob("*")):
        if not path.is_file():
            continue
        rel = path.relative_to(repo_root).as_posix()
        try:
            files[rel] = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            get_console().print_warning(f"could not read workflow file {rel}: {e}")
            continue
    return files


def fetch_workflow_files(repo_url: str, ref: Optional[str] = None) -> Dict[str, str]:
    """
    Clone a repository into a fresh temp directory and return its workflow files.

    The checkout is deleted before returning.

    Raises:
        ResourceAcquisitionError: temp directory or clone failure
    """
    try:
        tmp = tempfile.TemporaryDirectory(prefix=TEMPDIR_PREFIX)
    except OSError as e:
        raise ResourceAcquisitionError("temp directory", str(e))

    with tmp as tmp_dir:
        repo_root = clone(repo_url, Path(tmp_dir) / "repo", ref=ref)
        return read_workflow_files(repo_root)

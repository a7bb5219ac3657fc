"""
Thin subprocess wrapper used by the default host collaborators.
"""
import os
import subprocess
from typing import Dict, List, Optional

from converge.errors import ResourceError


def run_command(
    argv: List[str],
    kind: str,
    user: Optional[str] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    stdin: Optional[str] = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """
    Run argv and capture its output.

    A missing executable, or a non-zero exit when `check` is set, raises
    ResourceError carrying the command's stderr.
    """
    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update({k: str(v) for k, v in env.items()})
    try:
        result = subprocess.run(
            argv,
            input=stdin,
            capture_output=True,
            text=True,
            cwd=cwd,
            env=full_env,
            user=user,
        )
    except FileNotFoundError as exc:
        raise ResourceError(kind, f"command not found: {argv[0]}") from exc
    except KeyError as exc:
        # subprocess resolves `user` with getpwnam
        raise ResourceError(kind, f"unknown user '{user}'") from exc
    except (OSError, subprocess.SubprocessError) as exc:
        raise ResourceError(kind, f"cannot run {argv[0]}: {exc}") from exc

    if check and result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        raise ResourceError(
            kind, f"'{' '.join(argv)}' exited with {result.returncode}" + (f": {detail}" if detail else "")
        )
    return result

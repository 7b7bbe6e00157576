"""Helper for running external executables.

All subprocesses go through :func:`run_command`, which uses
:mod:`gevent.subprocess` so a blocking call cooperates with the rest of the
player (e.g. a task's :class:`gevent.Timeout`).
"""
import os
from typing import Dict, List, Optional

import structlog
from gevent import subprocess

log = structlog.get_logger(__name__)

TimeoutExpired = subprocess.TimeoutExpired


def run_command(
    command: List[str],
    env_overrides: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    timeout: Optional[float] = None,
    input: Optional[str] = None,  # pylint: disable=redefined-builtin
) -> subprocess.CompletedProcess:
    """Run `command` to completion and capture its output as text.

    `env_overrides` are applied on top of the current environment.

    :raises FileNotFoundError: if the executable does not exist.
    :raises TimeoutExpired: if the process did not finish within `timeout` seconds.
        The process is killed before the exception propagates.
    """
    env = os.environ.copy()
    if env_overrides:
        env.update(env_overrides)

    log.debug("Running command", command=command, cwd=cwd, timeout=timeout)
    completed = subprocess.run(
        command,
        env=env,
        cwd=cwd,
        input=input,
        timeout=timeout,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        universal_newlines=True,
    )
    log.debug("Command finished", command=command[:3], returncode=completed.returncode)
    return completed

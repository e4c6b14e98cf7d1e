# collaborators/installer.py
from __future__ import annotations

import os
import shlex
import string
import subprocess
from typing import Iterable

from ..errors import InputError, PipelineError


class InstallError(PipelineError):
    kind = "InstallError"


def _check_template(command: str) -> None:
    try:
        fields = [f for _, f, _, _ in string.Formatter().parse(command) if f is not None]
    except ValueError as e:
        raise InputError(f"Malformed install command {command!r}: {e}") from e
    if "name" not in fields:
        raise InputError(f"Install command {command!r} must contain a {{name}} placeholder")
    unknown = sorted({f or "{}" for f in fields if f != "name"})
    if unknown:
        raise InputError(
            f"Install command {command!r} has unsupported placeholders {unknown}; "
            "only {name} is substituted (write literal braces as {{ and }})"
        )


class ShellModuleInstaller:
    """
    Installs build-time tool modules by running a shell command per module.

    `command` is a template with a `{name}` placeholder, e.g.
    "python -m pip install {name}".
    """

    def __init__(self, command: str, cwd: str | None = None, env: dict | None = None):
        _check_template(command)
        self.command = command
        self.cwd = cwd
        self.env = env or {}

    def install(self, names: Iterable[str]) -> None:
        env = os.environ.copy()
        env.update(self.env)
        for name in names:
            cmd = self.command.format(name=shlex.quote(name))
            proc = subprocess.run(
                cmd,
                shell=True,
                cwd=self.cwd,
                env=env,
                text=True,
                capture_output=True,
            )
            if proc.returncode != 0:
                raise InstallError(
                    f"Installing '{name}' failed (exit={proc.returncode}): {cmd}\n{proc.stderr[-4000:]}"
                )

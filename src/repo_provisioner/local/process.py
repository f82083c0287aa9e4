"""Child process execution with streamed output."""

from __future__ import annotations

import codecs
import os
import selectors
import subprocess
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Callable, Dict, Mapping, Optional, Sequence, Union

from ..errors import ProcessExecutionError

OutputCallback = Callable[[str], None]

_READ_SIZE = 4096
_ERROR_DETAIL_LIMIT = 2000


@dataclass(frozen=True)
class ProcessEnvironment:
    """Environment handed to a child process.

    ``base_environment`` is supplied by the caller; when
    ``ssh_command_override`` is set it is exported as ``GIT_SSH_COMMAND``.
    """

    base_environment: Mapping[str, str] = field(default_factory=dict)
    ssh_command_override: Optional[str] = None

    def resolve(self) -> Dict[str, str]:
        env = dict(self.base_environment)
        if self.ssh_command_override:
            env["GIT_SSH_COMMAND"] = self.ssh_command_override
        return env


def run_child_process(
    command: str,
    args: Sequence[str],
    on_output: OutputCallback,
    environment: ProcessEnvironment,
    *,
    cwd: Union[str, PurePath, None] = None,
) -> None:
    """Run ``command`` and forward stdout/stderr chunks as they arrive.

    Returns when the child exits with status 0; otherwise raises
    :class:`ProcessExecutionError` carrying the tail of stderr. No timeout is
    applied.
    """
    argv = [command, *args]
    try:
        process = subprocess.Popen(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=environment.resolve(),
            cwd=str(cwd) if cwd else None,
        )
    except OSError as exc:
        raise ProcessExecutionError(argv, None, str(exc)) from exc

    assert process.stdout is not None and process.stderr is not None
    decoders = {
        process.stdout.fileno(): codecs.getincrementaldecoder("utf-8")(errors="replace"),
        process.stderr.fileno(): codecs.getincrementaldecoder("utf-8")(errors="replace"),
    }
    stderr_fd = process.stderr.fileno()
    stderr_tail = ""

    sel = selectors.DefaultSelector()
    sel.register(process.stdout, selectors.EVENT_READ)
    sel.register(process.stderr, selectors.EVENT_READ)
    try:
        while sel.get_map():
            for key, _ in sel.select():
                data = os.read(key.fd, _READ_SIZE)
                if not data:
                    sel.unregister(key.fileobj)
                    continue
                text = decoders[key.fd].decode(data)
                if not text:
                    continue
                if key.fd == stderr_fd:
                    stderr_tail = (stderr_tail + text)[-_ERROR_DETAIL_LIMIT:]
                on_output(text)
    except BaseException:
        process.kill()
        process.wait()
        raise
    finally:
        sel.close()
        process.stdout.close()
        process.stderr.close()

    exit_code = process.wait()
    if exit_code != 0:
        raise ProcessExecutionError(argv, exit_code, stderr_tail.strip() or "No command output")

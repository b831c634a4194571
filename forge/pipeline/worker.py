import os
import shlex
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from forge.pipeline.cancellation import CancellationToken, forward_signals

COMMAND_NOT_FOUND = 127


@dataclass
class WorkerInvocation:
    command: List[str]
    args: List[str] = field(default_factory=list)
    cwd: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def argv(self) -> List[str]:
        return [*self.command, *self.args]

    def display(self) -> str:
        """Shell line an operator can paste to repeat this invocation."""
        line = shlex.join(self.argv)
        if self.env:
            assignments = " ".join(f"{k}={shlex.quote(v)}" for k, v in sorted(self.env.items()))
            line = f"{assignments} {line}"
        if self.cwd:
            line = f"cd {shlex.quote(self.cwd)} && {line}"
        return line


class WorkerProcessRunner:
    """
    Spawn one external worker with the terminal's stdio and wait for it.

    While the child runs, SIGINT/SIGTERM are routed through a CancellationToken
    and re-sent to the child; if it is still alive after the grace period it is
    killed. Handlers are restored as soon as the child exits. No timeout is
    applied to the wait itself because workers may be interactive.
    """

    def __init__(self, grace_period: float = 5.0, token: Optional[CancellationToken] = None):
        self.grace_period = grace_period
        self.token = token

    def run(self, invocation: WorkerInvocation) -> int:
        env = os.environ.copy()
        env.update(invocation.env)
        token = self.token or CancellationToken()
        timers: List[threading.Timer] = []

        print(f"[run] {invocation.display()}")
        with forward_signals(token):
            try:
                proc = subprocess.Popen(invocation.argv, cwd=invocation.cwd, env=env)
            except FileNotFoundError as e:
                print(f"[error] cannot start worker: {e}")
                return COMMAND_NOT_FOUND

            def _force_kill():
                if proc.poll() is None:
                    print(f"[warn] worker pid {proc.pid} still running after {self.grace_period}s; killing")
                    proc.kill()

            def _on_cancel(signum: int):
                if proc.poll() is not None:
                    return
                try:
                    proc.send_signal(signum)
                except ProcessLookupError:
                    return
                if not timers:
                    timer = threading.Timer(self.grace_period, _force_kill)
                    timer.daemon = True
                    timers.append(timer)
                    timer.start()

            unregister = token.register(_on_cancel)
            try:
                if token.cancelled:
                    _on_cancel(token.signum)
                returncode = proc.wait()
            finally:
                unregister()
                for timer in timers:
                    timer.cancel()

        return returncode

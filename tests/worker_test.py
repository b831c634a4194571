import os
import signal
import sys
import tempfile
import threading
import time
import unittest

from forge.pipeline.cancellation import CancellationToken, forward_signals
from forge.pipeline.errors import process_exit_code
from forge.pipeline.worker import COMMAND_NOT_FOUND, WorkerInvocation, WorkerProcessRunner

POSIX = os.name == "posix"


def python(code: str, *args: str) -> WorkerInvocation:
    return WorkerInvocation(command=[sys.executable, "-c", code], args=list(args))


def wait_for(path: str, timeout: float = 10.0):
    deadline = time.monotonic() + timeout
    while not os.path.exists(path):
        if time.monotonic() > deadline:
            raise AssertionError(f"{path} never appeared")
        time.sleep(0.02)


class WorkerRunnerTests(unittest.TestCase):
    def test_exit_codes_are_returned_as_is(self):
        runner = WorkerProcessRunner()
        self.assertEqual(runner.run(python("import sys; sys.exit(0)")), 0)
        self.assertEqual(runner.run(python("import sys; sys.exit(3)")), 3)

    def test_args_cwd_and_env_overrides(self):
        with tempfile.TemporaryDirectory() as tmp:
            code = (
                "import os, sys\n"
                "open('seen.txt', 'w').write(os.environ['FORGE_TEST_VAR'] + '|' + ' '.join(sys.argv[1:]))\n"
            )
            inv = python(code, "--entity", "Acme")
            inv.cwd = tmp
            inv.env = {"FORGE_TEST_VAR": "hello"}
            self.assertEqual(WorkerProcessRunner().run(inv), 0)
            with open(os.path.join(tmp, "seen.txt"), "r", encoding="utf-8") as f:
                self.assertEqual(f.read(), "hello|--entity Acme")
        self.assertNotIn("FORGE_TEST_VAR", os.environ)

    def test_missing_executable(self):
        inv = WorkerInvocation(command=["definitely-not-a-real-forge-worker"])
        self.assertEqual(WorkerProcessRunner().run(inv), COMMAND_NOT_FOUND)

    def test_signal_handlers_restored_after_run(self):
        before = (signal.getsignal(signal.SIGINT), signal.getsignal(signal.SIGTERM))
        WorkerProcessRunner().run(python("pass"))
        WorkerProcessRunner().run(python("import sys; sys.exit(1)"))
        after = (signal.getsignal(signal.SIGINT), signal.getsignal(signal.SIGTERM))
        self.assertEqual(before, after)

    def test_display_is_rerunnable_shell_line(self):
        inv = WorkerInvocation(command=["python", "run_analysis.py"], args=["--entity", "Big Co"],
                               cwd="/tmp/out dir", env={"ENTITY_NAME": "Big Co"})
        self.assertEqual(inv.display(),
                         "cd '/tmp/out dir' && ENTITY_NAME='Big Co' python run_analysis.py --entity 'Big Co'")


@unittest.skipUnless(POSIX, "signal forwarding is exercised on POSIX only")
class WorkerCancellationTests(unittest.TestCase):
    def test_cancel_forwards_signal_to_child(self):
        with tempfile.TemporaryDirectory() as tmp:
            ready = os.path.join(tmp, "ready")
            token = CancellationToken()
            runner = WorkerProcessRunner(grace_period=5.0, token=token)

            def cancel_when_ready():
                wait_for(ready)
                token.cancel(signal.SIGTERM)

            t = threading.Thread(target=cancel_when_ready, daemon=True)
            t.start()
            code = runner.run(python(f"import time; open({ready!r}, 'w').close(); time.sleep(30)"))
            t.join(5)
            self.assertEqual(code, -signal.SIGTERM)
            self.assertEqual(process_exit_code(code), 128 + signal.SIGTERM)

    def test_child_ignoring_signal_is_killed_after_grace_period(self):
        with tempfile.TemporaryDirectory() as tmp:
            ready = os.path.join(tmp, "ready")
            token = CancellationToken()
            runner = WorkerProcessRunner(grace_period=0.2, token=token)
            child = (
                "import signal, time\n"
                "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
                f"open({ready!r}, 'w').close()\n"
                "time.sleep(30)\n"
            )

            def cancel_when_ready():
                wait_for(ready)
                token.cancel(signal.SIGTERM)

            threading.Thread(target=cancel_when_ready, daemon=True).start()
            started = time.monotonic()
            code = runner.run(python(child))
            self.assertEqual(code, -signal.SIGKILL)
            self.assertLess(time.monotonic() - started, 20)

    def test_os_signal_to_orchestrator_reaches_child(self):
        with tempfile.TemporaryDirectory() as tmp:
            ready = os.path.join(tmp, "ready")

            def signal_parent_when_ready():
                wait_for(ready)
                os.kill(os.getpid(), signal.SIGTERM)

            threading.Thread(target=signal_parent_when_ready, daemon=True).start()
            code = WorkerProcessRunner(grace_period=5.0).run(
                python(f"import time; open({ready!r}, 'w').close(); time.sleep(30)"))
            self.assertEqual(code, -signal.SIGTERM)

    def test_forward_signals_restores_previous_handler(self):
        token = CancellationToken()
        before = signal.getsignal(signal.SIGTERM)
        with forward_signals(token):
            self.assertNotEqual(signal.getsignal(signal.SIGTERM), before)
        self.assertEqual(signal.getsignal(signal.SIGTERM), before)

    def test_token_callbacks_unregister(self):
        token = CancellationToken()
        seen = []
        unregister = token.register(seen.append)
        token.cancel(signal.SIGINT)
        unregister()
        token.cancel(signal.SIGTERM)
        self.assertEqual(seen, [signal.SIGINT])
        self.assertTrue(token.cancelled)
        self.assertEqual(token.signum, signal.SIGTERM)


if __name__ == "__main__":
    unittest.main()

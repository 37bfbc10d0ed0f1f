"""Run one external command with a progress indicator and a time budget."""

import logging
import os
import re
import shutil
import signal
import subprocess
import tempfile
from collections.abc import Iterable, Sequence
from pathlib import Path

from caddroid.core.config import Settings
from caddroid.core.result import (
    TIMEOUT_EXIT_CODE,
    InvocationError,
    SupervisedResult,
    normalize_exit_code,
)
from caddroid.core.steps import StepCounter
from caddroid.utils.progress import Indicator, IndicatorStatus

logger = logging.getLogger(__name__)

BUFFER_PREFIX = "caddroid-"
_BUFFER_DIR_RE = re.compile(rf"^{BUFFER_PREFIX}(\d+)-")

Operation = str | Sequence[str]


class CommandSupervisor:
    """Supervises a single child process at a time.

    The child's stdout and stderr go to separate files in a per-call
    temporary directory that is removed before ``run_with_progress``
    returns, whatever the outcome.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        steps: StepCounter | None = None,
        indicator: Indicator | None = None,
    ):
        self.settings = settings or Settings()
        if steps is None:
            steps = StepCounter(total=self.settings.total_steps)
        self.steps = steps
        self.indicator = indicator or Indicator(
            delay=self.settings.spinner_delay,
            max_width=self.settings.max_label_width,
        )

    def run_with_progress(
        self,
        message: str,
        estimated_seconds: int,
        operation: Operation,
        success_codes: Iterable[int] | None = None,
    ) -> SupervisedResult:
        """Run ``operation`` while the indicator shows ``message``.

        Args:
            message: Label for the status line.
            estimated_seconds: Expected duration; the command is killed after
                ``estimated_seconds * timeout_multiplier`` seconds.
            operation: Shell command string, or an argv sequence.
            success_codes: Exit codes reported as 0. Defaults to the
                configured codes (100, the package manager "already
                satisfied" code). Pass ``()`` to report codes unchanged.

        Returns:
            SupervisedResult with the remapped exit code, or exit code 124
            and ``timed_out=True`` if the budget ran out.

        Raises:
            InvocationError: If ``operation`` is empty.
        """
        if not _has_operation(operation):
            raise InvocationError("run_with_progress: No command provided")

        accepted = frozenset(
            self.settings.success_codes if success_codes is None else success_codes
        )

        display = message
        if self.steps.total > 0:
            self.steps.increment()
            display = f"{self.steps.progress()} {message}"

        self._sweep_stale_buffers()
        self.indicator.start(display)

        try:
            status, text, result = self._supervise(
                message, estimated_seconds, operation, accepted
            )
        except BaseException as e:
            self.indicator.stop(
                IndicatorStatus.ERROR, f"{message} ({type(e).__name__})"
            )
            raise

        self.indicator.stop(status, text)
        if not result.ok and self.settings.debug:
            tail = result.stderr_tail()
            if tail:
                logger.debug("Command error output: %s", tail)

        return result

    def _supervise(
        self,
        message: str,
        estimated_seconds: int,
        operation: Operation,
        accepted: frozenset[int],
    ) -> tuple[IndicatorStatus, str, SupervisedResult]:
        """Run the child and return the final status line with its result."""
        timeout_seconds = estimated_seconds * self.settings.timeout_multiplier
        temp_root = Path(self.settings.temp_root)
        temp_root.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(
            prefix=f"{BUFFER_PREFIX}{os.getpid()}-",
            dir=temp_root,
            ignore_cleanup_errors=True,
        ) as workdir:
            stdout_path = Path(workdir) / "stdout"
            stderr_path = Path(workdir) / "stderr"

            with open(stdout_path, "wb") as out, open(stderr_path, "wb") as err:
                try:
                    proc = subprocess.Popen(
                        operation,
                        shell=isinstance(operation, str),
                        stdin=subprocess.DEVNULL,
                        stdout=out,
                        stderr=err,
                        start_new_session=True,
                    )
                except OSError as e:
                    return (
                        IndicatorStatus.ERROR,
                        f"{message} ({e.strerror or e})",
                        SupervisedResult(exit_code=127, stderr=str(e)),
                    )

                try:
                    proc.wait(timeout=timeout_seconds)
                except subprocess.TimeoutExpired:
                    self._terminate(proc)
                    return (
                        IndicatorStatus.ERROR,
                        f"Timeout after {timeout_seconds}s",
                        SupervisedResult(exit_code=TIMEOUT_EXIT_CODE, timed_out=True),
                    )
                except BaseException:
                    # The child is in its own session and never sees the
                    # terminal's SIGINT.
                    self._terminate(proc)
                    raise

            exit_code = normalize_exit_code(proc.returncode, accepted)
            stdout = stdout_path.read_text(errors="replace")
            stderr = stderr_path.read_text(errors="replace")

        result = SupervisedResult(exit_code=exit_code, stdout=stdout, stderr=stderr)
        if result.ok:
            return IndicatorStatus.SUCCESS, message, result
        return IndicatorStatus.ERROR, f"{message} (exit {exit_code})", result

    def _terminate(self, proc: subprocess.Popen) -> None:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError) as e:
            logger.debug("Could not kill process group %s: %s", proc.pid, e)
            try:
                proc.kill()
            except OSError as kill_error:
                logger.debug("Could not kill process %s: %s", proc.pid, kill_error)
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.debug("Process %s still running after kill", proc.pid)

    def _sweep_stale_buffers(self) -> None:
        """Remove capture directories left behind by dead processes."""
        temp_root = Path(self.settings.temp_root)
        if not temp_root.is_dir():
            return

        for entry in temp_root.iterdir():
            match = _BUFFER_DIR_RE.match(entry.name)
            if not match or not entry.is_dir():
                continue
            pid = int(match.group(1))
            if pid == os.getpid() or _pid_alive(pid):
                continue
            try:
                shutil.rmtree(entry)
                logger.debug("Removed stale capture directory %s", entry)
            except OSError as e:
                logger.debug("Could not remove %s: %s", entry, e)


def _has_operation(operation: Operation | None) -> bool:
    if operation is None:
        return False
    if isinstance(operation, str):
        return bool(operation.strip())
    return len(operation) > 0 and bool(str(operation[0]).strip())


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True

import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import List, Optional

from depaudit import config
from depaudit.core.errors import ToolInvocationError, ScanCancelled


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class ToolRunner:
    """Runs read-only ecosystem tools for one auditor.

    Every call blocks until the tool exits. ``cancel()`` may be called from
    another thread; it kills the running process and makes later calls fail.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else config.TOOL_TIMEOUT
        self._lock = threading.Lock()
        self._proc: Optional[subprocess.Popen] = None
        self.cancelled = False

    def run(self, cmd: List[str], cwd: str) -> CommandResult:
        with self._lock:
            if self.cancelled:
                raise ScanCancelled("Scan cancelled")
            logging.debug(f"Running {' '.join(cmd)} in {cwd}")
            try:
                self._proc = subprocess.Popen(
                    cmd,
                    cwd=cwd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                )
            except OSError as e:
                raise ToolInvocationError(cmd, f"cannot execute: {e}")
            proc = self._proc

        try:
            stdout, stderr = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            raise ToolInvocationError(cmd, f"timed out after {self.timeout}s")
        finally:
            with self._lock:
                self._proc = None

        if self.cancelled:
            raise ScanCancelled("Scan cancelled")

        return CommandResult(proc.returncode, stdout or "", stderr or "")

    def check_output(self, cmd: List[str], cwd: str) -> str:
        """Run ``cmd`` and return stdout, raising on a non-zero exit."""
        result = self.run(cmd, cwd)
        if not result.success:
            raise ToolInvocationError(cmd, f"exit status {result.returncode}", result.stderr.strip())
        return result.stdout

    def cancel(self) -> None:
        with self._lock:
            self.cancelled = True
            if self._proc is not None and self._proc.poll() is None:
                logging.warning(f"Terminating subprocess {self._proc.pid}")
                self._proc.terminate()

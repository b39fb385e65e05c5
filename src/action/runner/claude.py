"""Assistant CLI subprocess management.

Runs the assistant as an async subprocess fed through a named pipe:

    prompt file --(sh -c cat > fifo)--> FIFO --(cat fifo)--> os.pipe --> assistant stdin

The prompt can be larger than a command-line argument allows, and the
assistant reads it as a stream. Its stdout (one JSON record per line) is
echoed to the workflow log through a display transform and kept for the
execution artifact. Stderr is inherited so assistant diagnostics reach the
log unmodified.

A run that outlives its timeout receives SIGTERM, then SIGKILL after a
grace period, and reports exit code 124.
"""

import asyncio
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Mapping, Optional, TextIO, Union

from pydantic import BaseModel, ConfigDict

from src.action.config import DEFAULT_EXECUTION_FILE, DEFAULT_PIPE_PATH
from src.action.runner.transforms import LineTransform, pretty_json_line

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
DEFAULT_KILL_GRACE_SECONDS = 5.0
HELPER_STOP_SECONDS = 1.0

# stream-json records can be far larger than asyncio's 64 KiB line default
STREAM_LIMIT_BYTES = 16 * 1024 * 1024


class SpawnError(Exception):
    """Raised when the assistant process cannot be started."""

    pass


class ExecutionResult(BaseModel):
    """Result of one assistant run.

    Attributes:
        succeeded: True when the assistant exited with code 0.
        exit_code: Process exit code; 124 means the run timed out.
        artifact_path: Execution artifact, when one was written.
        timed_out: Whether the timeout fired.
        duration_seconds: Wall-clock execution time.
    """

    model_config = ConfigDict(frozen=True)

    succeeded: bool
    exit_code: int
    artifact_path: Optional[str] = None
    timed_out: bool = False
    duration_seconds: float = 0.0


class ClaudeRunner:
    """Launches the assistant CLI and supervises it to completion.

    Attributes:
        executable: Path or name of the assistant binary.
        pipe_path: Location of the prompt FIFO.
        execution_file: Where the execution artifact is written.
        kill_grace_seconds: Wait between SIGTERM and SIGKILL on timeout.
        line_transform: Display transform applied to each stdout line.
        sink: Stream the transformed lines are written to.
    """

    def __init__(
        self,
        executable: str = "claude",
        pipe_path: Union[str, Path] = DEFAULT_PIPE_PATH,
        execution_file: Union[str, Path] = DEFAULT_EXECUTION_FILE,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        line_transform: LineTransform = pretty_json_line,
        sink: Optional[TextIO] = None,
    ):
        self.executable = executable
        self.pipe_path = Path(pipe_path)
        self.execution_file = Path(execution_file)
        self.kill_grace_seconds = kill_grace_seconds
        self.line_transform = line_transform
        self.sink = sink

    async def run(
        self,
        prompt_path: Union[str, Path],
        arguments: List[str],
        env: Mapping[str, str],
        timeout_minutes: float,
    ) -> ExecutionResult:
        """Execute the assistant with the prompt streamed on stdin.

        Args:
            prompt_path: File holding the generated prompt.
            arguments: Assistant command-line arguments.
            env: Complete environment for the assistant process.
            timeout_minutes: Wall-clock limit; fractional values are allowed.

        Returns:
            ExecutionResult. A timeout is reported as exit code 124, never
            raised.

        Raises:
            SpawnError: If the FIFO cannot be created or the assistant
                binary cannot be started.
            ValueError: If an output line exceeds the stream limit. The
                assistant is stopped before the error propagates.
        """
        start_time = time.monotonic()
        self._log_prompt_size(Path(prompt_path))
        self._create_fifo()

        writer: Optional[asyncio.subprocess.Process] = None
        reader: Optional[asyncio.subprocess.Process] = None
        process: Optional[asyncio.subprocess.Process] = None
        raw_lines: List[str] = []
        timed_out = False

        try:
            writer = await self._spawn_helper(
                "prompt writer",
                "sh",
                "-c",
                'cat "$1" > "$2"',
                "sh",
                str(prompt_path),
                str(self.pipe_path),
            )
            read_fd, write_fd = os.pipe()
            try:
                reader = await self._spawn_helper(
                    "pipe reader", "cat", str(self.pipe_path), stdout=write_fd
                )
            finally:
                os.close(write_fd)

            try:
                process = await self._start_assistant(arguments, env, stdin=read_fd)
            finally:
                os.close(read_fd)

            try:
                await asyncio.wait_for(
                    self._stream_output(process, raw_lines),
                    timeout=timeout_minutes * 60,
                )
                exit_code = self._normalize_exit_code(process.returncode)
            except asyncio.TimeoutError:
                timed_out = True
                exit_code = TIMEOUT_EXIT_CODE
                logger.error(
                    "Claude process timed out after %.0f seconds",
                    timeout_minutes * 60,
                )
                await self._terminate(process, self.kill_grace_seconds)
        finally:
            if process is not None and process.returncode is None:
                logger.warning("Stopping Claude process after output handling failed")
                await self._terminate(process, self.kill_grace_seconds)
            for helper in (writer, reader):
                if helper is not None:
                    await self._terminate(helper, HELPER_STOP_SECONDS)
            self._remove_fifo()

        artifact_path = None
        if exit_code == 0 or raw_lines:
            artifact_path = self._write_artifact(raw_lines)

        duration = time.monotonic() - start_time
        return self._build_result(exit_code, artifact_path, timed_out, duration)

    def _log_prompt_size(self, prompt_path: Path) -> None:
        try:
            size = str(prompt_path.stat().st_size)
        except OSError:
            logger.warning("Could not stat prompt file")
            size = "unknown"
        logger.info(
            "Running Claude with prompt from file: %s (%s bytes)", prompt_path, size
        )

    def _create_fifo(self) -> None:
        """Replace any stale FIFO with a fresh one.

        Raises:
            SpawnError: If the FIFO cannot be created.
        """
        self._remove_fifo()
        try:
            self.pipe_path.parent.mkdir(parents=True, exist_ok=True)
            os.mkfifo(self.pipe_path)
        except OSError as exc:
            raise SpawnError(f"Failed to create prompt pipe {self.pipe_path}: {exc}") from exc

    def _remove_fifo(self) -> None:
        try:
            self.pipe_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove prompt pipe %s: %s", self.pipe_path, exc)

    async def _spawn_helper(
        self, role: str, *command: str, stdout: Optional[int] = None
    ) -> Optional[asyncio.subprocess.Process]:
        """Start a helper process; failures are logged, not raised."""
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout if stdout is not None else asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.error("Failed to start %s: %s", role, exc)
            return None

    async def _start_assistant(
        self, arguments: List[str], env: Mapping[str, str], stdin: int
    ) -> asyncio.subprocess.Process:
        logger.debug("Claude arguments: %s", " ".join(arguments))
        try:
            return await asyncio.create_subprocess_exec(
                self.executable,
                *arguments,
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                env=dict(env),
                limit=STREAM_LIMIT_BYTES,
            )
        except OSError as exc:
            logger.error("Error spawning Claude process: %s", exc)
            raise SpawnError(f"Failed to start {self.executable}: {exc}") from exc

    async def _stream_output(
        self, process: asyncio.subprocess.Process, raw_lines: List[str]
    ) -> None:
        """Echo stdout lines as they arrive, then wait for exit.

        Lines collected before a timeout stay in ``raw_lines``.
        """
        sink = self.sink if self.sink is not None else sys.stdout
        assert process.stdout is not None

        while True:
            raw_line = await process.stdout.readline()
            if not raw_line:
                break
            line = raw_line.decode("utf-8", errors="replace").rstrip("\n")
            if not line.strip():
                continue
            raw_lines.append(line)
            sink.write(self.line_transform(line) + "\n")
            sink.flush()

        await process.wait()

    async def _terminate(
        self, process: asyncio.subprocess.Process, grace_seconds: float
    ) -> None:
        """SIGTERM, wait up to ``grace_seconds``, then SIGKILL."""
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=grace_seconds)
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    @staticmethod
    def _normalize_exit_code(returncode: Optional[int]) -> int:
        """Map signal deaths (negative return codes) to the shell's 128+N."""
        if returncode is None:
            return 1
        if returncode < 0:
            return 128 - returncode
        return returncode

    def _write_artifact(self, raw_lines: List[str]) -> Optional[str]:
        """Write the parseable output records as one JSON array.

        Returns:
            The artifact path, or None if it could not be written.
        """
        records = []
        for line in raw_lines:
            try:
                records.append(json.loads(line))
            except ValueError:
                logger.debug("Skipping non-JSON output line")

        try:
            self.execution_file.parent.mkdir(parents=True, exist_ok=True)
            self.execution_file.write_text(json.dumps(records, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to process output for execution metrics: %s", exc)
            return None

        logger.info("Execution log saved to %s", self.execution_file)
        return str(self.execution_file)

    def _build_result(
        self,
        exit_code: int,
        artifact_path: Optional[str],
        timed_out: bool,
        duration: float,
    ) -> ExecutionResult:
        succeeded = exit_code == 0 and not timed_out

        if succeeded:
            logger.info("Claude completed successfully in %.1fs", duration)
        else:
            logger.error(
                "Claude failed with exit code %d in %.1fs", exit_code, duration
            )

        return ExecutionResult(
            succeeded=succeeded,
            exit_code=exit_code,
            artifact_path=artifact_path,
            timed_out=timed_out,
            duration_seconds=duration,
        )

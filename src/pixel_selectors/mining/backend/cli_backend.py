"""Subprocess-based adapter for the external selector search worker."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from pixel_selectors.mining.errors import (
    BatchProcessFailure,
    InvocationTimeout,
    MiningInterrupted,
    WorkerUnavailable,
)
from pixel_selectors.mining.models import BatchSearchRequest, Candidate, SearchRequest
from pixel_selectors.mining.parsing import (
    LineKind,
    ResultsSectionParser,
    filter_relevant_lines,
    parse_found_line,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProcessOutcome:
    """Exit status of one polled worker process."""

    exit_code: int
    timed_out: bool
    interrupted: bool


class CliMinerBackend:
    """Run the search worker binary in single-target or batch mode.

    With no explicit `command`, the binary is expected at
    `miner_dir/binary_name` and is built with `build_command` on first use.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        miner_dir: Path,
        binary_name: str = "selector_miner_cuda",
        command: str | None = None,
        build_command: str = "make",
        compiler_probe: str | None = "nvcc --version",
        batch_prefix: str = "f",
        request_dir: Path | None = None,
    ) -> None:
        self.miner_dir = miner_dir
        self.binary_name = binary_name
        self.command = command
        self.build_command = build_command
        self.compiler_probe = compiler_probe
        self.batch_prefix = batch_prefix
        self.request_dir = request_dir
        self._argv: list[str] | None = None

    @property
    def workdir(self) -> Path | None:
        return self.miner_dir if self.miner_dir.is_dir() else None

    def prepare(self) -> None:
        self.resolve_argv()

    def resolve_argv(self) -> list[str]:
        """Resolve the worker argv prefix, building the binary when needed."""

        if self._argv is not None:
            return self._argv
        if self.command is not None:
            self._argv = _resolve_command(self.command)
            return self._argv

        binary = self.miner_dir / self.binary_name
        if not binary.exists():
            self._build(binary)
        self._argv = [str(binary)]
        return self._argv

    def search_one(self, request: SearchRequest) -> Candidate | None:
        argv = [
            *self.resolve_argv(),
            request.prefix,
            request.signature_placeholder,
            "0x" + request.target_hex,
        ]
        with tempfile.TemporaryFile("w+", encoding="utf-8") as output_handle:
            try:
                outcome = _run_with_timeout(
                    argv=argv,
                    cwd=self.workdir,
                    output_handle=output_handle,
                    timeout_seconds=request.timeout_seconds,
                    shutdown_requested=request.shutdown_requested,
                )
            except OSError as error:
                raise WorkerUnavailable(
                    f"Search worker failed to start: {error}",
                    target_hex=request.target_hex,
                ) from error
            output_handle.seek(0)
            output = output_handle.read()

        if outcome.interrupted:
            raise MiningInterrupted(
                "Mining interrupted by user",
                target_hex=request.target_hex,
            )
        if outcome.timed_out:
            raise InvocationTimeout(
                f"Timeout after {request.timeout_seconds} seconds",
                target_hex=request.target_hex,
            )

        relevant = filter_relevant_lines(output)
        candidate = parse_found_line(
            output=relevant,
            prefix=request.prefix,
            target_hex=request.target_hex,
        )
        if candidate is None:
            logger.error(
                "Could not parse miner output (exit code %d): %s",
                outcome.exit_code,
                (relevant or output)[:500],
            )
        return candidate

    def search_batch(self, request: BatchSearchRequest) -> Iterator[Candidate]:
        argv = self.resolve_argv()
        fd, request_name = tempfile.mkstemp(
            prefix="temp_selectors_",
            suffix=".txt",
            dir=self.request_dir,
        )
        request_path = Path(request_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write("\n".join("0x" + target for target in request.target_hexes))

            logger.info("Starting batch mining for %d selectors...", len(request.target_hexes))
            started = time.monotonic()
            try:
                process = subprocess.Popen(  # noqa: S603
                    [*argv, "--batch", str(request_path)],
                    cwd=self.workdir,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    bufsize=1,
                )
            except OSError as error:
                raise WorkerUnavailable(f"Search worker failed to start: {error}") from error

            found = yield from _stream_batch_output(
                process=process,
                parser=ResultsSectionParser(prefix=self.batch_prefix),
                shutdown_requested=request.shutdown_requested,
            )
            exit_code = process.returncode
            if exit_code != 0:
                raise BatchProcessFailure(
                    f"Miner process exited with code {exit_code}",
                    exit_code=exit_code,
                )
            logger.info(
                "Batch mining complete! Found %d/%d selectors in %.2fs",
                found,
                len(request.target_hexes),
                time.monotonic() - started,
            )
        finally:
            request_path.unlink(missing_ok=True)

    def _build(self, binary: Path) -> None:
        logger.info("Building search worker in %s...", self.miner_dir)
        if not self.miner_dir.is_dir():
            raise WorkerUnavailable(f"Miner directory not found: {self.miner_dir}")
        if self.compiler_probe:
            try:
                subprocess.run(  # noqa: S603
                    shlex.split(self.compiler_probe),
                    check=True,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except (OSError, subprocess.CalledProcessError) as error:
                raise WorkerUnavailable(
                    f"Compiler probe failed ({self.compiler_probe}). "
                    "Install the CUDA toolkit to build the miner.",
                ) from error
        try:
            subprocess.run(  # noqa: S603
                shlex.split(self.build_command),
                cwd=self.miner_dir,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as error:
            raise WorkerUnavailable(f"Failed to build search worker: {error}") from error
        if not binary.exists():
            raise WorkerUnavailable(f"Build finished but {binary} was not produced")


def _resolve_command(command: str) -> list[str]:
    argv = shlex.split(command)
    if not argv:
        raise WorkerUnavailable("Search worker command is empty.")
    head = argv[0]
    resolved = shutil.which(head)
    if resolved is None and not Path(head).is_file():
        raise WorkerUnavailable(f"Search worker executable not found: {head}")
    return argv


def _stream_batch_output(
    *,
    process: subprocess.Popen[str],
    parser: ResultsSectionParser,
    shutdown_requested: Callable[[], bool] | None,
) -> Iterator[Candidate]:
    """Yield framed results while forwarding other output to the log; return count."""

    assert process.stdout is not None
    assert process.stderr is not None
    stderr_thread = threading.Thread(
        target=_forward_stderr,
        args=(process.stderr,),
        daemon=True,
    )
    stderr_thread.start()
    finished = threading.Event()
    watcher_thread: threading.Thread | None = None
    if shutdown_requested is not None:
        watcher_thread = threading.Thread(
            target=_watch_shutdown,
            args=(process, shutdown_requested, finished),
            daemon=True,
        )
        watcher_thread.start()
    found = 0
    try:
        for raw_line in process.stdout:
            if shutdown_requested is not None and shutdown_requested():
                raise MiningInterrupted("Batch mining interrupted by user")
            parsed = parser.feed(raw_line)
            if parsed.kind is LineKind.INFO:
                logger.info("%s", parsed.text)
            elif parsed.kind is LineKind.MALFORMED:
                logger.warning("Could not parse result line: %s", parsed.text)
            elif parsed.kind is LineKind.RESULT and parsed.candidate is not None:
                found += 1
                yield parsed.candidate
        process.wait()
    finally:
        finished.set()
        if watcher_thread is not None:
            watcher_thread.join(timeout=5)
        if process.poll() is None:
            _terminate_process(process)
        process.stdout.close()
        stderr_thread.join(timeout=2)
    if shutdown_requested is not None and shutdown_requested():
        raise MiningInterrupted("Batch mining interrupted by user")
    return found


def _watch_shutdown(
    process: subprocess.Popen[str],
    shutdown_requested: Callable[[], bool],
    finished: threading.Event,
) -> None:
    """Terminate a batch worker that keeps running after a stop request."""

    while not finished.wait(0.05):
        if process.poll() is not None:
            return
        if shutdown_requested():
            logger.warning("Stop requested, terminating batch worker")
            _terminate_process(process)
            return


def _forward_stderr(stream: IO[str]) -> None:
    for line in stream:
        text = line.strip()
        if text:
            logger.warning("%s", text)


def _run_with_timeout(
    *,
    argv: list[str],
    cwd: Path | None,
    output_handle: IO[str],
    timeout_seconds: int,
    shutdown_requested: Callable[[], bool] | None,
) -> ProcessOutcome:
    process = subprocess.Popen(  # noqa: S603
        argv,
        cwd=cwd,
        stdout=output_handle,
        stderr=subprocess.STDOUT,
        text=True,
    )
    start_monotonic = time.monotonic()

    while True:
        returncode = process.poll()
        if returncode is not None:
            return ProcessOutcome(exit_code=returncode, timed_out=False, interrupted=False)

        if time.monotonic() - start_monotonic >= timeout_seconds:
            _terminate_process(process)
            return ProcessOutcome(exit_code=124, timed_out=True, interrupted=False)

        if shutdown_requested is not None and shutdown_requested():
            _terminate_process(process)
            return ProcessOutcome(exit_code=130, timed_out=False, interrupted=True)

        time.sleep(0.05)


def _terminate_process(process: subprocess.Popen[str] | subprocess.Popen[bytes]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)

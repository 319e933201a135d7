"""Process supervisor — runs an external tool and turns its output into events.

A supervised invocation goes through a small state machine:

    running --Stdout/Stderr--> running      (stderr may surface as progress)
    running --Terminated-----> done         (Success / NonZeroExit / Unknown)
    running --Errored--------> done         (SpawnOrRuntimeError)

:func:`reduce` is the pure transition function.  :func:`supervise` feeds it the
events produced by two concurrent stream readers and a waiter, delivers the
notifications it returns, and stops at the first terminal event.
"""

import asyncio
import codecs
import logging
import re
import shlex
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Sequence

from clipdeck.models import (
    ClipDeckError,
    NonZeroExit,
    ProcessOutcome,
    ProcessResult,
    SpawnOrRuntimeError,
    Success,
    UnknownTermination,
)
from clipdeck.sinks import ERROR, FINISHED, PROGRESS, Notification, NotificationSink, deliver

logger = logging.getLogger(__name__)

# ffmpeg rewrites its stats line in place with "\r", so both count as line ends.
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_READ_CHUNK = 4096


class SpawnError(ClipDeckError):
    """The executable could not be started."""
    pass


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Stdout:
    line: str


@dataclass(frozen=True)
class Stderr:
    line: str


@dataclass(frozen=True)
class Terminated:
    code: int | None


@dataclass(frozen=True)
class Errored:
    message: str


ProcessEvent = Stdout | Stderr | Terminated | Errored


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SupervisorState:
    last_progress: str | None = None
    outcome: ProcessOutcome | None = None

    @property
    def done(self) -> bool:
        return self.outcome is not None


def terminal_notification(outcome: ProcessOutcome) -> Notification:
    """Map an outcome to the single terminal notification it produces."""
    if isinstance(outcome, Success):
        return Notification(FINISHED, "Successfully processed video")
    if isinstance(outcome, NonZeroExit):
        return Notification(ERROR, f"FFmpeg exited with error code: {outcome.code}")
    if isinstance(outcome, SpawnOrRuntimeError):
        return Notification(ERROR, f"Command error: {outcome.message}")
    return Notification(ERROR, "FFmpeg process finished without explicit status code.")


def _conclude(
    state: SupervisorState, outcome: ProcessOutcome
) -> tuple[SupervisorState, Notification]:
    return replace(state, outcome=outcome), terminal_notification(outcome)


def reduce(
    state: SupervisorState, event: ProcessEvent
) -> tuple[SupervisorState, Notification | None]:
    """Apply one process event; return the new state and what to notify, if anything.

    Once an outcome is recorded every further event is ignored.
    """
    if state.done:
        return state, None

    if isinstance(event, Stdout):
        return state, None

    if isinstance(event, Stderr):
        if event.line == state.last_progress:
            return state, None
        return replace(state, last_progress=event.line), Notification(PROGRESS, event.line)

    if isinstance(event, Errored):
        return _conclude(state, SpawnOrRuntimeError(event.message))

    if isinstance(event, Terminated):
        if event.code is None:
            return _conclude(state, UnknownTermination())
        if event.code == 0:
            return _conclude(state, Success())
        return _conclude(state, NonZeroExit(event.code))

    raise TypeError(f"Unknown process event: {event!r}")


def finish(state: SupervisorState) -> tuple[SupervisorState, Notification | None]:
    """Close out a loop that ended without a terminal event."""
    if state.done:
        return state, None
    return _conclude(state, UnknownTermination())


# ---------------------------------------------------------------------------
# Running processes
# ---------------------------------------------------------------------------

async def spawn(executable: str | Path, args: Sequence[str | Path]) -> asyncio.subprocess.Process:
    """Start *executable* with *args* passed as discrete arguments (no shell)."""
    cmd = [str(executable), *(str(a) for a in args)]
    logger.debug("Spawning: %s", shlex.join(cmd))
    try:
        return await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise SpawnError(f"Failed to start {executable}: {e}") from e


async def _pump(
    stream: asyncio.StreamReader,
    kind: type,
    events: asyncio.Queue,
    raw: list[str],
) -> None:
    """Split *stream* into lines and post one *kind* event per non-empty line.

    The decoded text is also appended to *raw* unchanged.
    """
    # one decoder per stream so a character split across reads stays whole
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    try:
        while True:
            chunk = await stream.read(_READ_CHUNK)
            text = decoder.decode(chunk, final=not chunk)
            raw.append(text)
            buffer += text
            *lines, buffer = _LINE_BREAK.split(buffer)
            for line in lines:
                if line.strip():
                    await events.put(kind(line))
            if not chunk:
                break
        if buffer.strip():
            await events.put(kind(buffer))
    except OSError as e:
        await events.put(Errored(f"error reading {kind.__name__.lower()}: {e}"))


async def _await_exit(
    process: asyncio.subprocess.Process,
    readers: Sequence[asyncio.Task],
    events: asyncio.Queue,
) -> None:
    # Both readers reach EOF before Terminated is posted so no output line is
    # queued behind the terminal event.
    try:
        await asyncio.gather(*readers)
        code = await process.wait()
        await events.put(Terminated(code))
    except OSError as e:
        await events.put(Errored(str(e)))
    finally:
        await events.put(None)


async def supervise(
    process: asyncio.subprocess.Process,
    sink: NotificationSink | None = None,
) -> ProcessResult:
    """Drive *process* to completion, relaying notifications to *sink*.

    Exactly one terminal notification is delivered, after every progress
    notification.  Both streams are captured in the returned result.
    """
    events: asyncio.Queue = asyncio.Queue()
    raw_stdout: list[str] = []
    raw_stderr: list[str] = []
    readers = [
        asyncio.create_task(_pump(process.stdout, Stdout, events, raw_stdout)),
        asyncio.create_task(_pump(process.stderr, Stderr, events, raw_stderr)),
    ]
    waiter = asyncio.create_task(_await_exit(process, readers, events))

    state = SupervisorState()
    stdout: list[str] = []
    stderr: list[str] = []
    try:
        while not state.done:
            event = await events.get()
            if event is None:
                break
            if isinstance(event, Stdout):
                stdout.append(event.line)
            elif isinstance(event, Stderr):
                stderr.append(event.line)
            state, note = reduce(state, event)
            if note is not None:
                deliver(sink, note)
    finally:
        for task in (*readers, waiter):
            if not task.done():
                task.cancel()

    if not state.done:
        logger.warning("Process %s ended without a status", process.pid)
        state, note = finish(state)
        deliver(sink, note)

    logger.info("Process %s finished: %s", process.pid, state.outcome)
    return ProcessResult(
        outcome=state.outcome,
        stdout=stdout,
        stderr=stderr,
        raw_stdout="".join(raw_stdout),
        raw_stderr="".join(raw_stderr),
    )


async def run(
    executable: str | Path,
    args: Sequence[str | Path],
    sink: NotificationSink | None = None,
) -> ProcessResult:
    """Spawn and supervise in one call; raises :class:`SpawnError` if it cannot start."""
    process = await spawn(executable, args)
    return await supervise(process, sink)

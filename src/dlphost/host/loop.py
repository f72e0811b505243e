"""Native host loop: read frame, evaluate, answer, audit."""

from __future__ import annotations

import enum
import logging
import signal
import sys
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import IO

from dlphost.audit.logger import AuditLogger
from dlphost.config import HostConfig
from dlphost.errors import (
    AuditWriteError,
    InvalidFrameLength,
    MalformedEventPayload,
    MessageTooLarge,
    PolicyLoadError,
    TruncatedMessage,
)
from dlphost.host.reader import CancellableReader, ShutdownRequested
from dlphost.messaging.framing import decode_body, read_frame, write_frame
from dlphost.policy.evaluator import PolicyEvaluator, fallback_decision
from dlphost.policy.loader import load_policy
from dlphost.schema.models import PolicyDecision, TelemetryEvent
from dlphost.schema.wire import decision_to_dict, event_from_dict

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STREAM_ERROR = 1


class HostState(enum.Enum):
    """Lifecycle of the native host process."""

    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass
class HostStats:
    frames_read: int = 0
    events_evaluated: int = 0
    decisions_sent: int = 0
    dropped_messages: int = 0
    invalid_frames: int = 0
    audit_failures: int = 0


class NativeHost:
    """Strictly sequential host loop over one input and one output stream.

    Each frame is read, evaluated, answered and audited before the next read,
    so decisions leave in the order their events arrived. The evaluator and
    audit logger are built by the caller; ``evaluator=None`` answers every
    event with the no-policy fallback decision.
    """

    def __init__(
        self,
        audit_logger: AuditLogger,
        input_stream: IO[bytes],
        output_stream: IO[bytes],
        evaluator: PolicyEvaluator | None = None,
        poll_interval: float = 0.2,
        on_decision: Callable[[TelemetryEvent, PolicyDecision], None] | None = None,
    ) -> None:
        self._audit = audit_logger
        self._output = output_stream
        self._evaluator = evaluator
        self._on_decision = on_decision
        self._stop_event = threading.Event()
        self._reader = CancellableReader(input_stream, self._stop_event, poll_interval)
        self._state = HostState.STARTING
        self.stats = HostStats()

    @property
    def state(self) -> HostState:
        return self._state

    def stop(self) -> None:
        """Request shutdown. Safe to call from signal handlers and other threads."""
        self._stop_event.set()

    def run(self) -> int:
        """Run until EOF, a fatal stream error or stop(). Returns the exit status."""
        if self._state is not HostState.STARTING:
            raise RuntimeError("NativeHost.run() can only be called once")

        self._transition(HostState.RUNNING)
        exit_code = EXIT_STREAM_ERROR
        try:
            exit_code = self._read_loop()
        finally:
            self._drain()
        return exit_code

    def handle_frame(self, body: bytes) -> PolicyDecision | None:
        """Process one frame body. Returns the decision sent, or None if dropped.

        Raises OSError if the decision could not be written to the peer.
        """
        try:
            message = decode_body(body)
        except MalformedEventPayload as exc:
            return self._drop("Bad message body: %s", exc)

        msg_type = message.get("type")
        if msg_type != "event":
            return self._drop("Ignoring non-event message (type=%r)", msg_type)

        payload = message.get("payload")
        if payload is None:
            return self._drop("Event message is missing its payload")

        try:
            event = event_from_dict(payload)
        except MalformedEventPayload as exc:
            return self._drop("Failed to parse event: %s", exc)

        logger.info(
            "Event %s: %s from %s",
            event.event_id,
            event.event_type.wire,
            event.domain or "unknown",
        )
        decision = self._evaluate(event)
        self.stats.events_evaluated += 1
        logger.info(
            "Decision %s: %s %s",
            event.event_id,
            decision.decision.wire,
            decision.decision_reason,
        )

        # The peer gets its answer whatever happens to the audit write.
        self._send(decision)
        self._record(event, decision)

        if self._on_decision:
            self._on_decision(event, decision)
        return decision

    def _read_loop(self) -> int:
        while not self._stop_event.is_set():
            try:
                body = read_frame(self._reader)
            except ShutdownRequested:
                logger.info("Shutdown requested while waiting for input")
                return EXIT_OK
            except InvalidFrameLength as exc:
                # No resync token exists; skip the header and hope the next
                # four bytes start a frame.
                self.stats.invalid_frames += 1
                logger.error("Bad message: %s", exc)
                continue
            except TruncatedMessage as exc:
                logger.error("%s; input can no longer be trusted", exc)
                return EXIT_STREAM_ERROR
            except OSError as exc:
                logger.error("Reading from browser failed: %s", exc)
                return EXIT_STREAM_ERROR

            if body is None:
                logger.info("EOF on input; browser closed the connection")
                return EXIT_OK

            self.stats.frames_read += 1
            try:
                self.handle_frame(body)
            except OSError as exc:
                logger.error("Writing to browser failed: %s", exc)
                return EXIT_STREAM_ERROR

        logger.info("Shutdown requested")
        return EXIT_OK

    def _evaluate(self, event: TelemetryEvent) -> PolicyDecision:
        if self._evaluator is None:
            return fallback_decision(event)
        return self._evaluator.evaluate(event)

    def _send(self, decision: PolicyDecision) -> None:
        try:
            write_frame(
                self._output,
                {"type": "decision", "payload": decision_to_dict(decision)},
            )
        except MessageTooLarge as exc:
            logger.error("Decision for %s not sent: %s", decision.event_id, exc)
            return
        self.stats.decisions_sent += 1

    def _record(self, event: TelemetryEvent, decision: PolicyDecision) -> None:
        try:
            self._audit.log_event(event, decision)
        except AuditWriteError as exc:
            self.stats.audit_failures += 1
            logger.error("Audit log write failed for %s: %s", event.event_id, exc)

    def _drop(self, msg: str, *args: object) -> None:
        self.stats.dropped_messages += 1
        logger.warning(msg, *args)
        return None

    def _drain(self) -> None:
        self._transition(HostState.DRAINING)
        try:
            self._audit.close()
        finally:
            self._reader.close()
            logger.info("Session totals: %s", asdict(self.stats))
            self._transition(HostState.STOPPED)

    def _transition(self, state: HostState) -> None:
        logger.debug("Host state %s -> %s", self._state.value, state.value)
        self._state = state


def load_evaluator(policy_path: str | None) -> PolicyEvaluator | None:
    """Load the policy best-effort. None means "run with the allow fallback"."""
    if policy_path is None:
        logger.warning("No policy file found; every event will be allowed")
        return None
    try:
        policy = load_policy(policy_path)
    except PolicyLoadError as exc:
        logger.error("Policy not loaded (%s); every event will be allowed", exc)
        return None
    logger.info(
        "Policy %s v%s loaded from %s (%d exceptions, %d rules)",
        policy.policy_id,
        policy.policy_version,
        policy_path,
        len(policy.exceptions),
        len(policy.rules),
    )
    return PolicyEvaluator(policy)


def serve(
    config: HostConfig,
    input_stream: IO[bytes] | None = None,
    output_stream: IO[bytes] | None = None,
) -> int:
    """Start the host on stdin/stdout (or the given streams). Returns the exit status."""
    logger.info("Native host started; waiting for messages")
    evaluator = load_evaluator(
        str(config.policy_path) if config.policy_path is not None else None
    )

    try:
        config.log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Cannot create audit log directory %s: %s", config.log_dir, exc)
    logger.info("Audit logs: %s", config.log_dir)

    host = NativeHost(
        audit_logger=AuditLogger(config.log_dir),
        input_stream=input_stream if input_stream is not None else sys.stdin.buffer,
        output_stream=output_stream if output_stream is not None else sys.stdout.buffer,
        evaluator=evaluator,
        poll_interval=config.poll_interval,
    )

    def _signal_handler(signum: int, frame: object) -> None:
        logger.info("Received signal %d; shutting down", signum)
        host.stop()

    previous = _install_signal_handlers(_signal_handler)
    try:
        exit_code = host.run()
    finally:
        _restore_signal_handlers(previous)
    logger.info("Native host exited with status %d", exit_code)
    return exit_code


def _install_signal_handlers(handler: Callable[[int, object], None]) -> dict:
    previous = {}
    if threading.current_thread() is not threading.main_thread():
        return previous
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handler)
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)

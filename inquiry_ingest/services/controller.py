from __future__ import annotations

import itertools
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any

from ..models.controller_state import ControllerState, SlotStatus, TaskToken
from ..models.parse_result import ErrorCategory, ParseResult
from ..models.schema import TASK_TIMEOUT_MS
from ..models.upload import UploadedFile
from .worker import Engine, EngineCreationError, EngineFactory, EngineProcess

"""Ingestion controller: owns the single upload slot and its parse task.

Responsibilities:
- Start one engine per accepted file (previous task is hard-cancelled)
- Arm a fixed timeout per task
- Translate engine messages into ControllerState snapshots
- Drop every message whose task token is not the live task's token

All state changes happen under one lock. Engine listener threads and the
timeout timer only ever call back with the token they were created for; the
token is compared at receipt, never inferred from arrival order.
"""

__all__ = [
    "IngestionController",
    "StateListener",
]

logger = logging.getLogger(__name__)

StateListener = Callable[[ControllerState], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


@dataclass
class _Task:
    token: TaskToken
    engine: Engine
    timer: Any = None
    started: float = field(default_factory=time.perf_counter)

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000.0


def _default_timer(seconds: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(seconds, callback)
    timer.daemon = True
    return timer


class IngestionController:
    """Manage exactly one parse task at a time for an interactive caller.

    ``submit_file`` returns immediately. Completion is observed by polling
    ``get_state()`` or through listeners registered with ``subscribe()``.
    """

    def __init__(
        self,
        *,
        engine_factory: EngineFactory = EngineProcess,
        timeout_ms: int = TASK_TIMEOUT_MS,
        timer_factory: TimerFactory = _default_timer,
    ) -> None:
        self._engine_factory = engine_factory
        self._timeout_seconds = timeout_ms / 1000.0
        self._timeout_ms = timeout_ms
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._generation = itertools.count(1)
        self._state = ControllerState(status=SlotStatus.IDLE)
        self._task: _Task | None = None
        # 置き換え済みタスクのエンジン (遅延メッセージ受信時に再度停止する)
        self._retired: dict[TaskToken, Engine] = {}
        self._listeners: list[StateListener] = []
        # 状態の版数。通知は版数順にのみ配送し、古い版は捨てる
        self._version = 0
        self._delivered_version = 0
        self._notify_lock = threading.RLock()

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def submit_file(self, upload: UploadedFile) -> None:
        """Accept a file from the upload source and start parsing it.

        A file rejected by the upload source goes straight to ERRORED.
        Resubmitting the file that is already parsing or resolved is a no-op.
        """
        with self._lock:
            identity = upload.identity
            if (
                self._state.status in (SlotStatus.PARSING, SlotStatus.RESOLVED)
                and self._state.file == identity
            ):
                logger.debug(f"resubmission ignored file={identity} status={self._state.status.value}")
                return

            self._clear_task()
            if upload.rejected:
                logger.info(f"file rejected by upload source file={identity}: {upload.error}")
                self._set_state(
                    ControllerState(
                        status=SlotStatus.ERRORED,
                        file=identity,
                        selection_error=upload.error,
                    )
                )
            else:
                self._start_task(upload)
        self._notify()

    def cancel(self) -> None:
        """Clear the slot from any state. No-op when already idle."""
        with self._lock:
            if self._state.status is SlotStatus.IDLE and self._task is None:
                return
            self._clear_task()
            self._set_state(ControllerState(status=SlotStatus.IDLE))
        self._notify()

    def close(self) -> None:
        """Session teardown: cancel and drop all listeners."""
        self.cancel()
        with self._lock:
            for engine in self._retired.values():
                engine.terminate()
            self._retired.clear()
            self._listeners.clear()

    def get_state(self) -> ControllerState:
        with self._lock:
            return self._state

    def is_busy(self) -> bool:
        with self._lock:
            return self._state.status is SlotStatus.PARSING

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener. Returns a function that unsubscribes it.

        Listeners are called one at a time, in the order the states were set.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    # ------------------------------------------------------------------
    # engine / timer callbacks (any thread)
    # ------------------------------------------------------------------
    def _on_engine_message(self, token: TaskToken, message: dict[str, Any]) -> None:
        kind = message.get("kind")
        with self._lock:
            if not self._is_live(token):
                self._drop_stale(token, kind)
                return
            if kind == "progress":
                self._set_state(replace(self._state, progress=dict(message)))
            elif kind == "result":
                result = ParseResult.from_message(message)
                logger.info(
                    f"{token} resolved success={result.success} rows={result.total_row_count} "
                    f"elapsed_ms={result.processing_time_ms:.1f}"
                )
                self._resolve(result)
            elif kind == "fault":
                self._resolve_fault(token, str(message.get("message")))
            else:
                logger.warning(f"{token} unknown engine message kind={kind!r}")
                return
        self._notify()

    def _on_engine_fault(self, token: TaskToken, detail: str) -> None:
        with self._lock:
            if not self._is_live(token):
                self._drop_stale(token, "fault")
                return
            self._resolve_fault(token, detail)
        self._notify()

    def _on_timeout(self, token: TaskToken) -> None:
        with self._lock:
            if not self._is_live(token):
                return
            logger.warning(f"{token} timed out after {self._timeout_ms} ms")
            self._resolve(
                ParseResult.failure(
                    ErrorCategory.TIMEOUT,
                    f"Processing the file timed out after {self._timeout_ms / 1000:g} seconds.",
                    file_size=token.file.size,
                    processing_time_ms=self._task.elapsed_ms(),
                )
            )
        self._notify()

    # ------------------------------------------------------------------
    # internals (lock held)
    # ------------------------------------------------------------------
    def _is_live(self, token: TaskToken) -> bool:
        return (
            self._task is not None
            and self._task.token == token
            and self._state.status is SlotStatus.PARSING
        )

    def _drop_stale(self, token: TaskToken, kind: Any) -> None:
        logger.debug(f"{token} stale message dropped kind={kind}")
        engine = self._retired.pop(token, None)
        if engine is not None:
            engine.terminate()

    def _start_task(self, upload: UploadedFile) -> None:
        token = TaskToken(generation=next(self._generation), file=upload.identity)
        try:
            engine = self._engine_factory(
                partial(self._on_engine_message, token),
                partial(self._on_engine_fault, token),
            )
            engine.start({"file": upload.content, "name": upload.name})
        except EngineCreationError as e:
            logger.error(f"{token} engine creation failed: {e}")
            self._set_state(
                ControllerState(
                    status=SlotStatus.RESOLVED,
                    file=upload.identity,
                    result=ParseResult.failure(
                        ErrorCategory.CREATION_FAILURE,
                        "Could not start the spreadsheet parser.",
                        detail=str(e),
                        file_size=upload.size,
                    ),
                )
            )
            return

        timer = self._timer_factory(self._timeout_seconds, partial(self._on_timeout, token))
        self._task = _Task(token=token, engine=engine, timer=timer)
        self._set_state(ControllerState(status=SlotStatus.PARSING, file=upload.identity))
        timer.start()
        logger.info(f"{token} parsing started")

    def _resolve(self, result: ParseResult) -> None:
        file = self._state.file
        self._release_task(retire=False)
        self._set_state(ControllerState(status=SlotStatus.RESOLVED, file=file, result=result))

    def _resolve_fault(self, token: TaskToken, detail: str) -> None:
        logger.error(f"{token} engine fault: {detail}")
        self._resolve(
            ParseResult.failure(
                ErrorCategory.ENGINE_FAULT,
                "Error parsing spreadsheet file.",
                detail=detail,
                file_size=token.file.size,
                processing_time_ms=self._task.elapsed_ms(),
            )
        )

    def _clear_task(self) -> None:
        self._prune_retired()
        self._release_task(retire=True)

    def _release_task(self, *, retire: bool) -> None:
        task = self._task
        if task is None:
            return
        self._task = None
        if task.timer is not None:
            task.timer.cancel()
        task.engine.terminate()
        if retire:
            self._retired[task.token] = task.engine

    def _prune_retired(self) -> None:
        for token, engine in list(self._retired.items()):
            if not engine.is_alive():
                del self._retired[token]

    def _set_state(self, state: ControllerState) -> None:
        self._state = state
        self._version += 1

    def _notify(self) -> None:
        """Deliver the current snapshot to listeners, outside the state lock.

        Deliveries are serialized and ordered by state version: a snapshot older
        than one already delivered is dropped, so listeners never go backwards.
        """
        with self._lock:
            version = self._version
            state = self._state
            listeners = list(self._listeners)
        with self._notify_lock:
            if version <= self._delivered_version:
                return
            self._delivered_version = version
            for listener in listeners:
                listener(state)
                if self._delivered_version != version:
                    # listener 内で状態が進み、新しい版が配送済み
                    return

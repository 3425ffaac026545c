from __future__ import annotations

import logging
import multiprocessing
import threading
from collections.abc import Callable
from multiprocessing.connection import Connection
from typing import Any, Protocol

from ..excel.reader import parse_workbook

"""Parser engine process and its parent-side handle.

One engine process per parse task. Message protocol over a duplex Pipe:

    controller -> engine   {"file": bytes, "name": str}                 (once)
    engine -> controller   {"kind": "progress", "stage", "percent", "fileSize"}  (0..n)
    engine -> controller   {"kind": "result", ...ParseResult fields}    (exactly 1)
    engine -> controller   {"kind": "fault", "message": str}            (uncaught error)

Cancellation is ``Process.terminate()`` with no handshake. Messages received
after termination are dropped here, and the controller checks task tokens on
every message anyway.
"""

__all__ = [
    "EngineCreationError",
    "Engine",
    "EngineFactory",
    "EngineProcess",
    "run_engine",
]

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any]], None]
FaultHandler = Callable[[str], None]

TERMINAL_KINDS = frozenset({"result", "fault"})


class EngineCreationError(Exception):
    """Raised when the engine process could not be started."""


class Engine(Protocol):
    def start(self, request: dict[str, Any]) -> None: ...

    def terminate(self) -> None: ...

    def is_alive(self) -> bool: ...


EngineFactory = Callable[[MessageHandler, FaultHandler], Engine]


def run_engine(conn: Connection) -> None:
    """Engine process entry point: one request in, progress + one result out."""
    try:
        request = conn.recv()
        data = request.get("file")
        name = request.get("name")
        if data is None:
            conn.send({"kind": "fault", "message": "no file received by engine"})
            return
        file_size = len(data)

        def progress(stage: str, percent: int) -> None:
            conn.send({"kind": "progress", "stage": stage, "percent": percent, "fileSize": file_size})

        progress("reading", 10)
        result = parse_workbook(data, name, on_progress=progress)
        conn.send(result.to_message())
    except Exception as e:
        conn.send({"kind": "fault", "message": f"{type(e).__name__}: {e}"})
    finally:
        conn.close()


class EngineProcess:
    """Parent-side handle of one engine process.

    A daemon listener thread sends the request, then forwards every inbound
    message to ``on_message`` until a terminal message arrives. If the pipe
    closes before that (crash, kill) ``on_fault`` is called instead, unless the
    engine was terminated on purpose.
    """

    def __init__(
        self,
        on_message: MessageHandler,
        on_fault: FaultHandler,
        *,
        context: Any = None,
    ) -> None:
        self._on_message = on_message
        self._on_fault = on_fault
        self._ctx = context if context is not None else multiprocessing.get_context()
        self._process: Any = None
        self._conn: Connection | None = None
        self._listener: threading.Thread | None = None
        self._terminated = threading.Event()

    def start(self, request: dict[str, Any]) -> None:
        """Spawn the engine process. Returns without waiting for the child.

        Raises:
            EngineCreationError: process or pipe could not be created
        """
        try:
            parent_conn, child_conn = self._ctx.Pipe(duplex=True)
            process = self._ctx.Process(
                target=run_engine,
                args=(child_conn,),
                name=f"inquiry-engine-{request.get('name')}",
                daemon=True,
            )
            process.start()
        except (OSError, ValueError, RuntimeError) as e:
            raise EngineCreationError(f"failed to start engine process: {e}") from e
        # 子プロセス側の端点は親では不要
        child_conn.close()
        self._process = process
        self._conn = parent_conn
        self._listener = threading.Thread(
            target=self._listen,
            args=(request,),
            name=f"{process.name}-listener",
            daemon=True,
        )
        self._listener.start()

    def _listen(self, request: dict[str, Any]) -> None:
        conn = self._conn
        assert conn is not None
        try:
            conn.send(request)
            while True:
                message = conn.recv()
                if self._terminated.is_set():
                    return
                self._on_message(message)
                if message.get("kind") in TERMINAL_KINDS:
                    return
        except (EOFError, OSError) as e:
            if self._terminated.is_set():
                return
            self._process.join(timeout=1.0)
            self._on_fault(
                f"engine exited without result (exitcode={self._process.exitcode}): "
                f"{type(e).__name__}"
            )
        finally:
            conn.close()
            self._process.join(timeout=1.0)

    def terminate(self) -> None:
        """Kill the engine process. Safe to call more than once."""
        if self._terminated.is_set():
            return
        self._terminated.set()
        if self._process is not None and self._process.is_alive():
            logger.debug(f"terminating engine pid={self._process.pid}")
            self._process.terminate()

    def is_alive(self) -> bool:
        return self._process is not None and self._process.is_alive()

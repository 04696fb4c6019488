from __future__ import annotations

import asyncio
import enum
import logging

from ..domain.entities import DATASET_FILES, SessionStatus
from ..domain.errors import SessionInitError, SessionNotReadyError
from ..domain.interfaces import IDatasetFetcher, IQueryEngine, IQueryHandle

log = logging.getLogger(__name__)


class SessionState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING  = "initializing"
    READY         = "ready"
    FAILED        = "failed"


class DatasetSession:
    """
    Owns the embedded engine and the one live query handle.

    open() is guarded: the first call starts initialisation as a task, and
    every call made while it runs awaits that same task instead of starting
    another. Initialisation is all-or-nothing; any failing step leaves the
    session FAILED and every later open() re-raises the same error.

    Both collaborators are injected, the engine and the dataset fetcher.
    """

    def __init__(self, engine: IQueryEngine, fetcher: IDatasetFetcher, files: dict[str, str] | None = None) -> None:
        self._engine  = engine
        self._fetcher = fetcher
        self._files   = dict(files or DATASET_FILES)
        self._state   = SessionState.UNINITIALIZED
        self._handle: IQueryHandle | None = None
        self._error:  SessionInitError | None = None
        self._init_task: asyncio.Task | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return SessionStatus(
            ready   = self._state is SessionState.READY,
            loading = self._state is SessionState.INITIALIZING,
            error   = str(self._error) if self._error else None,
        )

    @property
    def handle(self) -> IQueryHandle:
        if self._state is not SessionState.READY or self._handle is None:
            raise SessionNotReadyError(f"session is {self._state.value}")
        return self._handle

    async def open(self) -> IQueryHandle:
        if self._state is SessionState.READY and self._handle is not None:
            return self._handle
        if self._state is SessionState.FAILED and self._error is not None:
            raise self._error

        if self._init_task is None:
            self._state     = SessionState.INITIALIZING
            self._init_task = asyncio.ensure_future(self._initialize())

        # shield: a cancelled caller must not cancel the shared bring-up
        return await asyncio.shield(self._init_task)

    async def _initialize(self) -> IQueryHandle:
        handle: IQueryHandle | None = None
        step = "start"
        try:
            log.info("Starting query engine …")
            await self._engine.start()

            step   = "connect"
            handle = await self._engine.connect()
            log.info("Connection established")

            for file_name, table in self._files.items():
                step = "fetch"
                data = await self._fetcher.fetch(file_name)
                step = "register"
                rows = await handle.register_table(table, data)
                log.info("Loaded %s into %s (%d rows)", file_name, table, rows)

        except asyncio.CancelledError:
            log.info("Session initialisation cancelled at %s", step)
            await self._release(handle)
            raise
        except Exception as exc:
            error = exc if isinstance(exc, SessionInitError) else SessionInitError(
                f"Session initialisation failed at {step}: {exc}", step=step,
            )
            log.error("Session initialisation failed: %s", error, exc_info=True)
            await self._release(handle)
            self._error     = error
            self._state     = SessionState.FAILED
            self._init_task = None
            if error is exc:
                raise
            raise error from exc

        self._handle    = handle
        self._state     = SessionState.READY
        self._init_task = None
        log.info("Session ready | tables: %s", ", ".join(self._files.values()))
        return handle

    async def close(self) -> None:
        """
        Close the connection, then terminate the engine. Each step is
        best-effort: failures are logged and never raised. A FAILED session
        keeps its error.
        """
        task, self._init_task = self._init_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, SessionInitError):
                pass

        handle, self._handle = self._handle, None
        await self._release(handle)

        if self._state is not SessionState.FAILED:
            self._state = SessionState.UNINITIALIZED
        log.info("Session closed")

    async def _release(self, handle: IQueryHandle | None) -> None:
        if handle is not None:
            try:
                await handle.close()
            except Exception as exc:
                log.warning("Closing connection failed: %s", exc)
        try:
            await self._engine.terminate()
        except Exception as exc:
            log.warning("Terminating engine failed: %s", exc)

    async def __aenter__(self) -> DatasetSession:
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

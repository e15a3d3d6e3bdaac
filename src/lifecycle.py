"""Process startup, serving and fatal-failure sequencing.

The controller walks a small state machine::

    configuring -> listening -> serving -> shutting_down -> stopped

``failed`` is reachable from configuring (invalid settings), from
listening (the port cannot be bound) and, through the fatal hooks, from
any state. Every failure path ends in the injected ``FatalHandler``, which
by default flushes the log queue and exits with status 1. No restart is
attempted here; that belongs to the process supervisor.
"""

import asyncio
import contextlib
import os
import signal
import socket
import sys
import threading
import time
from collections.abc import Awaitable, Callable, Generator, Mapping
from enum import Enum
from types import TracebackType
from typing import Any, NoReturn, TextIO

import uvicorn
from fastapi import FastAPI
from loguru import logger

from src.api.main import create_app
from src.core.config import Settings, load_settings
from src.core.constants import EXIT_FAILURE, EXIT_SUCCESS
from src.core.exceptions import ConfigurationError
from src.core.logging import build_uvicorn_log_config, flush_logs, setup_logging
from src.infrastructure.alert_scheduler import AlertJob, AlertScheduler

type FatalHandler = Callable[[BaseException], NoReturn]
type SettingsLoader = Callable[[], Settings]
type AppFactory = Callable[[Settings], FastAPI]

# Delay before exiting on a bind failure so queued log lines are written
BIND_FAILURE_FLUSH_DELAY_SECONDS = 0.5


class LifecycleState(Enum):
    """States of the server process."""

    CONFIGURING = "configuring"
    LISTENING = "listening"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    FAILED = "failed"


_TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.CONFIGURING: frozenset({LifecycleState.LISTENING}),
    LifecycleState.LISTENING: frozenset(
        {LifecycleState.SERVING, LifecycleState.SHUTTING_DOWN}
    ),
    LifecycleState.SERVING: frozenset({LifecycleState.SHUTTING_DOWN}),
    LifecycleState.SHUTTING_DOWN: frozenset({LifecycleState.STOPPED}),
    LifecycleState.STOPPED: frozenset(),
    LifecycleState.FAILED: frozenset(),
}


def exit_process(cause: BaseException) -> NoReturn:
    """Default fatal handler: flush logs and terminate immediately."""
    _ = cause
    with contextlib.suppress(Exception):
        flush_logs()
    sys.stderr.flush()
    os._exit(EXIT_FAILURE)


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a TCP socket the way uvicorn does, without exiting on failure.

    Raises:
        OSError: If the address is invalid or already in use.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


class GatewayServer(uvicorn.Server):
    """uvicorn server reporting when it starts serving and before it stops.

    Args:
        config: uvicorn configuration.
        on_started: Called once the server accepts connections.
        on_shutdown: Awaited before connections are closed.
    """

    def __init__(
        self,
        config: uvicorn.Config,
        *,
        on_started: Callable[[], None],
        on_shutdown: Callable[[], Awaitable[None]],
    ) -> None:
        super().__init__(config)
        self._on_started = on_started
        self._on_shutdown = on_shutdown

    async def startup(self, sockets: list[socket.socket] | None = None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self._on_started()

    async def shutdown(self, sockets: list[socket.socket] | None = None) -> None:
        await self._on_shutdown()
        await super().shutdown(sockets=sockets)

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None]:
        """Install uvicorn's signal handlers for the duration of serving.

        A signal that stopped the server has already been handled as a
        graceful shutdown, so it is not raised again once serving ends.
        """
        with super().capture_signals():
            yield
            for captured in self._captured_signals:
                logger.info("Shutdown requested by {}", signal.Signals(captured).name)
            self._captured_signals.clear()


class LifecycleController:
    """Drive the server process from configuration to shutdown.

    Args:
        settings_loader: Resolves and validates configuration.
        app_factory: Builds the ASGI application from settings.
        fatal_handler: Called with the cause of any fatal failure. Must
            not return in production; tests pass a raising stub.
        alert_jobs: Background alert jobs, keyed by name.
        sleep: Blocking sleep used for the bind-failure flush delay.
        stderr: Stream receiving configuration diagnostics.
    """

    def __init__(
        self,
        *,
        settings_loader: SettingsLoader = load_settings,
        app_factory: AppFactory = create_app,
        fatal_handler: FatalHandler = exit_process,
        alert_jobs: Mapping[str, AlertJob] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        stderr: TextIO | None = None,
    ) -> None:
        self.settings_loader = settings_loader
        self.app_factory = app_factory
        self.fatal_handler = fatal_handler
        self.alert_jobs = dict(alert_jobs or {})
        self.sleep = sleep
        self.stderr = stderr
        self.scheduler: AlertScheduler | None = None
        self._state = LifecycleState.CONFIGURING
        self._previous_hooks: tuple[Any, Any] | None = None

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self._state

    def _transition(self, target: LifecycleState) -> None:
        if target not in _TRANSITIONS[self._state]:
            msg = f"Invalid lifecycle transition {self._state.value} -> {target.value}"
            raise RuntimeError(msg)
        logger.debug(
            "Lifecycle transition", source=self._state.value, target=target.value
        )
        self._state = target

    def fail(self, cause: BaseException) -> NoReturn:
        """Enter the failed state and hand the cause to the fatal handler."""
        self._state = LifecycleState.FAILED
        self.fatal_handler(cause)

    # Configuring

    def _report_configuration_error(self, error: ConfigurationError) -> None:
        stream = self.stderr or sys.stderr
        lines = [f"{error.message}:"]
        lines.extend(f"  - {problem}" for problem in error.problems)
        print("\n".join(lines), file=stream)  # noqa: T201
        stream.flush()

    def configure(self) -> tuple[Settings, FastAPI]:
        """Resolve settings, configure logging and build the application.

        Configuration errors are printed to stderr and are fatal.
        """
        try:
            settings = self.settings_loader()
            setup_logging(settings)
            app = self.app_factory(settings)
        except ConfigurationError as e:
            self._report_configuration_error(e)
            self.fail(e)
        return settings, app

    # Listening

    def bind(self, settings: Settings) -> socket.socket:
        """Bind the configured address. A bind failure is fatal."""
        self._transition(LifecycleState.LISTENING)
        try:
            sock = bind_socket(settings.api_host, settings.api_port)
        except OSError as e:
            logger.opt(exception=e).error(
                "Failed to bind {}:{}",
                settings.api_host,
                settings.api_port,
                errno=e.errno,
            )
            self.sleep(BIND_FAILURE_FLUSH_DELAY_SECONDS)
            self.fail(e)
        logger.info("Listening on http://{}:{}", settings.api_host, settings.api_port)
        return sock

    # Serving

    def _build_scheduler(self, settings: Settings) -> AlertScheduler | None:
        if not settings.alert_config.enabled:
            return None
        scheduler = AlertScheduler(settings.alert_config.interval_seconds)
        for name, job in self.alert_jobs.items():
            scheduler.register(name, job)
        return scheduler

    def on_started(self) -> None:
        """Enter the serving state and start background jobs (best effort)."""
        asyncio.get_running_loop().set_exception_handler(self.handle_loop_exception)
        self._transition(LifecycleState.SERVING)

        if self.scheduler is None:
            return
        try:
            self.scheduler.start()
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Failed to start alert scheduler: {}: {}", type(e).__name__, e
            )

    async def on_shutdown(self) -> None:
        """Enter the shutting-down state and stop background jobs."""
        self._transition(LifecycleState.SHUTTING_DOWN)
        if self.scheduler is not None:
            await self.scheduler.stop()

    # Fatal hooks

    def handle_uncaught_exception(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        """``sys.excepthook`` replacement."""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        logger.opt(exception=(exc_type, exc, tb)).critical("Uncaught exception")
        self.fail(exc)

    def handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        """``threading.excepthook`` replacement."""
        if args.exc_type is SystemExit or args.exc_value is None:
            return
        logger.opt(
            exception=(args.exc_type, args.exc_value, args.exc_traceback)
        ).critical(
            "Uncaught exception in thread {}",
            args.thread.name if args.thread else "unknown",
        )
        self.fail(args.exc_value)

    def handle_loop_exception(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        """Event loop exception handler.

        Exceptions of tasks or futures that nobody retrieved are fatal;
        anything else goes to the loop's default handler.
        """
        exc = context.get("exception")
        from_task = "task" in context or "future" in context
        if isinstance(exc, BaseException) and from_task:
            logger.opt(exception=exc).critical(
                "Unhandled asynchronous exception: {}", context.get("message", "")
            )
            self.fail(exc)
        loop.default_exception_handler(context)

    def install_fatal_hooks(self) -> None:
        """Route uncaught faults of the process to the fatal handler."""
        self._previous_hooks = (sys.excepthook, threading.excepthook)
        sys.excepthook = self.handle_uncaught_exception
        threading.excepthook = self.handle_thread_exception

    def uninstall_fatal_hooks(self) -> None:
        """Restore the hooks that were active before ``install_fatal_hooks``."""
        if self._previous_hooks is None:
            return
        sys.excepthook, threading.excepthook = self._previous_hooks
        self._previous_hooks = None

    def run(self) -> int:
        """Run the server until it shuts down.

        Returns:
            int: 0 after a graceful shutdown.
        """
        self.install_fatal_hooks()
        try:
            settings, app = self.configure()
            sock = self.bind(settings)
            self.scheduler = self._build_scheduler(settings)

            server = GatewayServer(
                uvicorn.Config(
                    app,
                    host=settings.api_host,
                    port=settings.api_port,
                    log_config=build_uvicorn_log_config(),
                ),
                on_started=self.on_started,
                on_shutdown=self.on_shutdown,
            )
            try:
                asyncio.run(server.serve(sockets=[sock]))
            finally:
                sock.close()

            if not server.started:
                self.fail(RuntimeError("Server failed to start"))

            if self._state is LifecycleState.SERVING:
                self._transition(LifecycleState.SHUTTING_DOWN)
            self._transition(LifecycleState.STOPPED)
            logger.info("Server stopped")
            return EXIT_SUCCESS
        finally:
            self.uninstall_fatal_hooks()

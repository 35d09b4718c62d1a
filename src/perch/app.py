"""perch application class.

Mutable during setup (router, hooks, error handlers).
Frozen on the first request or at lifespan startup. Freezing runs the
before-start hooks (where decorator routes are registered) and then
compiles the router.
"""

import inspect
import logging
import threading
from collections.abc import Callable
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.types import ErrorHandler
from perch.config import AppConfig, configure_logging
from perch.routing.router import Router
from perch.server.handler import handle_request

logger = logging.getLogger("perch.app")


class App:
    """The perch ASGI application.

    Routes are added through ``app.router`` (``app.router.get(path, fn)``)
    or declared with the decorators in ``perch.decorators`` and registered
    by a before-start hook (see ``perch.decorators.install``).

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check so exactly one
        caller runs the before-start hooks and compiles the router.
    """

    __slots__ = (
        "_before_start_hooks",
        "_controllers",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
        "router",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self.router: Router = Router()
        self._before_start_hooks: list[Callable[[App], Any]] = []
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._controllers: dict[type, Any] = {}
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()
        configure_logging(self.config)

    # -- Lifecycle hooks --

    def before_start(self, func: Callable[["App"], Any]) -> Callable[["App"], Any]:
        """Register a synchronous hook that runs once while the app freezes.

        Hooks receive the app and run in registration order, before the
        router is compiled, so they may still add routes. An exception
        aborts startup.
        """
        self._check_not_frozen()
        self._before_start_hooks.append(func)
        return func

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        after the app has frozen and before requests are accepted.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler for a status code or exception type."""

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Controllers --

    def controller(self, cls: type) -> Any:
        """Return this app's single instance of controller *cls*.

        Created on first use with the app as its only argument.
        """
        instance = self._controllers.get(cls)
        if instance is None:
            instance = cls(self)
            self._controllers[cls] = instance
        return instance

    @property
    def frozen(self) -> bool:
        return self._frozen

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()

        await handle_request(
            scope,
            receive,
            send,
            app=self,
            router=self.router,
            error_handlers=self._error_handlers,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Freezing happens inside ``lifespan.startup`` so a registration
        error is reported as ``lifespan.startup.failed`` and the server
        never starts serving.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self._ensure_frozen()
                    await self.run_startup_hooks()
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await self.run_shutdown_hooks()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def run_startup_hooks(self) -> None:
        for hook in self._startup_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    async def run_shutdown_hooks(self) -> None:
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Run before-start hooks, then compile the router.

        MUST only be called while holding _freeze_lock. If a hook raises,
        the app stays unfrozen and the error propagates.
        """
        for hook in self._before_start_hooks:
            hook(self)
        self.router.compile()
        self._frozen = True
        logger.debug("App frozen with %d route bindings", len(self.router.bindings))

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, hooks, and error handlers before the first request."
            )
            raise RuntimeError(msg)

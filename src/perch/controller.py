"""Controller base class — group route handlers as methods.

Decorated methods are resolved at registration time to bound methods of
one controller instance per app::

    class UserController(Controller):
        @map_route("/users/{id:int}")
        @bind_path_param("id", value_type="number")
        async def show(self, id):
            self.logger.debug("show %s for %s", id, self.ctx.path)
            return {"id": id}
"""

import inspect
import logging
from typing import TYPE_CHECKING, Any

from perch.context import Context, get_context

if TYPE_CHECKING:
    from perch.app import App
    from perch.config import AppConfig

# Attribute set on functions defined in a Controller subclass body.
OWNER_ATTR = "__perch_controller__"


class Controller:
    """Base class for handler groups.

    Subclasses get ``app``, ``config``, ``logger`` and ``ctx`` (the
    current request context) without any per-request construction.
    """

    def __init__(self, app: "App") -> None:
        self.app = app
        self.logger = logging.getLogger(f"perch.controller.{type(self).__name__}")

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for value in vars(cls).values():
            func = inspect.unwrap(value) if inspect.isfunction(value) else None
            if func is not None:
                setattr(func, OWNER_ATTR, cls)

    @property
    def config(self) -> "AppConfig":
        return self.app.config

    @property
    def ctx(self) -> Context:
        """The context of the request being handled."""
        return get_context()


def controller_owner(func: Any) -> type | None:
    """Return the Controller subclass *func* was defined on, if any."""
    return getattr(inspect.unwrap(func), OWNER_ATTR, None)


def is_method_like(func: Any) -> bool:
    """True if *func* was defined in a class body.

    Judged from ``__qualname__``: ``Cls.method`` is, ``f.<locals>.g``
    and plain ``f`` are not.
    """
    parts = getattr(inspect.unwrap(func), "__qualname__", "").split(".")
    return len(parts) >= 2 and parts[-2] != "<locals>"

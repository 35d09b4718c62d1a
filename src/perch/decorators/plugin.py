"""Host integration — run route registration when the app starts."""

import logging
from typing import TYPE_CHECKING

from perch.decorators.mapper import Mapper, default_mapper

if TYPE_CHECKING:
    from perch.app import App

logger = logging.getLogger("perch.decorators")


def install(app: "App", mapper: Mapper | None = None) -> None:
    """Register *mapper*'s routes on *app* from a before-start hook.

    Uses the process-wide ``default_mapper`` when *mapper* is omitted.
    Does nothing when ``app.config.decorators_enabled`` is false.
    """
    if not app.config.decorators_enabled:
        logger.debug("Decorator routing disabled by config; not installing")
        return

    target = mapper or default_mapper

    def init_decorators(app: "App") -> None:
        target.init_app(app)
        logger.info("perch decorators initialized")

    app.before_start(init_decorators)

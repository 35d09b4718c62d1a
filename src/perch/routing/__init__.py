"""Routing — trie router with a verb-method registration surface.

Routes are added during setup (``router.get(path, handler)`` and friends)
and the table is compiled when the app freezes.
"""

from perch.routing.route import Route, RouteMatch
from perch.routing.router import ROUTER_VERBS, Router, parse_path

__all__ = ["ROUTER_VERBS", "Route", "RouteMatch", "Router", "parse_path"]

"""Items API — JSON CRUD declared with perch decorators.

Handlers live on a Controller; paths, verbs, and every parameter are
declared with decorators and registered once when the app starts.
Responses use the success/error envelope.

Run with any ASGI server:
    cd examples/items_api && uvicorn app:app
"""

import threading
from dataclasses import dataclass, replace

from perch import App, AppConfig, Controller
from perch.decorators import Mapper, install

app = App(AppConfig(route_prefix="/api"))
routes = Mapper()


@dataclass(frozen=True, slots=True)
class Item:
    id: int
    title: str
    done: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "done": self.done}


def _non_blank(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


class ItemController(Controller):
    """In-memory item store; one instance per app."""

    def __init__(self, app: App) -> None:
        super().__init__(app)
        self._items: dict[int, Item] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def _get(self, item_id: int) -> Item:
        with self._lock:
            item = self._items.get(item_id)
        if item is None:
            self.ctx.throw(f"Item {item_id} not found", 404)
        return item

    @routes.map_route("/items")
    @routes.bind_query("limit", value_type="number", default_value="50")
    @routes.bind_query("offset", value_type="number", default_value="0")
    @routes.wrap_response_json()
    def list_items(self, limit, offset):
        with self._lock:
            items = sorted(self._items.values(), key=lambda i: i.id)
        # number bindings may be floats (or inf); slices need ints
        limit = int(min(max(limit, 1), 100))
        offset = int(min(max(offset, 0), len(items)))
        return {
            "items": [i.to_dict() for i in items[offset : offset + limit]],
            "total": len(items),
        }

    @routes.map_route("/items/{id:int}")
    @routes.bind_path_param("id", value_type="number", required=True)
    @routes.wrap_response_json()
    def get_item(self, id):
        return self._get(id).to_dict()

    @routes.map_route("/items", methods="post")
    @routes.bind_body("title", required=True, is_required=_non_blank)
    @routes.wrap_response_json()
    def create_item(self, title):
        with self._lock:
            item = Item(id=self._next_id, title=title.strip())
            self._items[item.id] = item
            self._next_id += 1
        self.logger.info("created item %d", item.id)
        self.ctx.status = 201
        return item.to_dict()

    @routes.map_route("/items/{id:int}", methods=["put"])
    @routes.bind_path_param("id", value_type="number", required=True)
    @routes.bind_body("title")
    @routes.bind_body("done", value_type="boolean")
    @routes.wrap_response_json()
    def update_item(self, id, title, done):
        item = self._get(id)
        updated = replace(
            item,
            title=title.strip() if title is not None else item.title,
            done=done if done is not None else item.done,
        )
        with self._lock:
            self._items[id] = updated
        return updated.to_dict()

    @routes.map_route("/items/{id:int}", methods="delete")
    @routes.bind_path_param("id", value_type="number", required=True)
    @routes.wrap_response_json()
    def delete_item(self, id):
        item = self._get(id)
        with self._lock:
            self._items.pop(id, None)
        return item.to_dict()


install(app, routes)

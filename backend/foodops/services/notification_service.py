# Overview: Change notifications for committed writes; drives live aggregation refresh.

"""
Change notifications

subscribe(Model, callback, where=None) registers `callback(change)` for
committed inserts/updates/deletes of Model rows. A change is a plain dict:

    {"model": "SaleOrder", "op": "update", "id": 7, "values": {...loaded columns...}}

Changes are collected at flush time, delivered only after the transaction
commits, and dropped on rollback, so a retried or failed transaction never
notifies. Callbacks run after commit, when the session can no longer emit
SQL: they should record what changed (mark a view stale, enqueue work) and
leave the querying to a later call. A failing callback is logged and never
affects the committed transaction or the other subscribers.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Callable

from flask import current_app, has_app_context
from sqlalchemy import event, inspect

from ..extensions import db


_PENDING_KEY = "foodops.pending_changes"
_EXTENSION_KEY = "foodops.notifications"


@dataclass
class Subscription:
    id: int
    model: type
    callback: Callable[[dict], None]
    where: Callable[[dict], bool] | None = None

    def matches(self, change: dict) -> bool:
        if change["model"] != self.model.__name__:
            return False
        return self.where is None or bool(self.where(change))


class NotificationHub:
    """Per-app subscription registry."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._subscriptions: dict[int, Subscription] = {}

    def subscribe(self, model, callback, where=None) -> int:
        with self._lock:
            sub_id = next(self._ids)
            self._subscriptions[sub_id] = Subscription(sub_id, model, callback, where)
        return sub_id

    def unsubscribe(self, sub_id: int) -> None:
        with self._lock:
            self._subscriptions.pop(sub_id, None)

    def watched_models(self) -> set[str]:
        with self._lock:
            return {sub.model.__name__ for sub in self._subscriptions.values()}

    def dispatch(self, changes: list[dict], logger) -> int:
        with self._lock:
            subs = list(self._subscriptions.values())
        delivered = 0
        for change in changes:
            for sub in subs:
                try:
                    if not sub.matches(change):
                        continue
                    sub.callback(change)
                    delivered += 1
                except Exception:
                    logger.exception("Change subscriber %s failed for %s %s", sub.id, change["model"], change["id"])
        return delivered


def _hub(app=None) -> NotificationHub | None:
    app = app or (current_app._get_current_object() if has_app_context() else None)
    if app is None:
        return None
    return app.extensions.get(_EXTENSION_KEY)


def subscribe(model, callback, where=None, *, app=None) -> int:
    """Register callback(change) for committed writes to `model`. Returns a subscription id."""
    hub = _hub(app)
    if hub is None:
        raise RuntimeError("notifications are not initialised for this app")
    return hub.subscribe(model, callback, where)


def unsubscribe(sub_id: int, *, app=None) -> None:
    hub = _hub(app)
    if hub is not None:
        hub.unsubscribe(sub_id)


def _snapshot(obj, op: str) -> dict:
    state = inspect(obj)
    # Only already-loaded values; loading here would emit SQL mid-flush
    values = {
        attr.key: state.dict[attr.key]
        for attr in state.mapper.column_attrs
        if attr.key in state.dict
    }
    return {"model": type(obj).__name__, "op": op, "id": values.get("id"), "values": values}


def _after_flush(session, flush_context):
    hub = _hub()
    if hub is None:
        return
    watched = hub.watched_models()
    if not watched:
        return
    pending = session.info.setdefault(_PENDING_KEY, [])
    for op, objs in (("insert", session.new), ("update", session.dirty), ("delete", session.deleted)):
        for obj in objs:
            if type(obj).__name__ not in watched:
                continue
            if op == "update" and not session.is_modified(obj, include_collections=False):
                continue
            pending.append(_snapshot(obj, op))


def _after_commit(session):
    changes = session.info.pop(_PENDING_KEY, None)
    if not changes:
        return
    hub = _hub()
    if hub is None:
        return
    hub.dispatch(changes, current_app.logger)


def _after_rollback(session, previous_transaction):
    session.info.pop(_PENDING_KEY, None)


def init_app(app) -> NotificationHub:
    hub = NotificationHub()
    app.extensions[_EXTENSION_KEY] = hub

    # Session events are process-wide; install them once for the scoped session
    if not event.contains(db.session, "after_flush", _after_flush):
        event.listen(db.session, "after_flush", _after_flush)
        event.listen(db.session, "after_commit", _after_commit)
        event.listen(db.session, "after_soft_rollback", _after_rollback)
    return hub

from __future__ import annotations

from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import event, inspect, select
from sqlalchemy.orm import Session

from handoff.realtime.feed import ChangeEvent, ChangeEventType, ChangeFeed

WATCHED_TABLES = frozenset(
    {"clients", "projects", "messages", "files", "invoices", "portal_tokens", "profiles"}
)

_PENDING_KEY = "handoff_pending_changes"
_PREVIOUS_KEY = "handoff_previous_values"
_feeds: list[ChangeFeed] = []


def _snapshot(obj: Any) -> dict[str, Any]:
    state = inspect(obj)
    values = {key: value for key, value in state.dict.items() if not key.startswith("_")}
    return to_jsonable_python(values)


def _committed_row(session: Session, state: Any) -> dict[str, Any]:
    mapper = state.mapper
    criteria = [column == value for column, value in zip(mapper.primary_key, state.identity)]
    attrs = list(mapper.column_attrs)
    row = session.connection().execute(select(*[attr.columns[0] for attr in attrs]).where(*criteria)).first()
    if row is None:
        return {}
    return {attr.key: value for attr, value in zip(attrs, row)}


def _before_update(session: Session, obj: Any) -> tuple[dict[str, Any], dict[str, Any] | None]:
    """Return the committed columns missing from ``obj`` and the previous values of changed ones."""
    state = inspect(obj)
    committed: dict[str, Any] = {}
    if state.unloaded and state.identity is not None:
        # Expired attributes: read the row as committed before the flush overwrites it.
        committed = _committed_row(session, state)
    previous: dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            previous[attr.key] = history.deleted[0]
        elif history.added and attr.key in committed:
            previous[attr.key] = committed[attr.key]
    missing = {key: value for key, value in committed.items() if key not in state.dict}
    if not previous:
        return to_jsonable_python(missing), None
    for column, value in zip(state.mapper.primary_key, state.identity or ()):
        previous.setdefault(state.mapper.get_property_by_column(column).key, value)
    return to_jsonable_python(missing), to_jsonable_python(previous)


def _table_of(obj: Any) -> str | None:
    table = getattr(obj, "__tablename__", None)
    return table if table in WATCHED_TABLES else None


def _remember_previous(session: Session, _flush_context: Any, _instances: Any) -> None:
    before: dict[int, tuple[dict[str, Any], dict[str, Any] | None]] = session.info.setdefault(_PREVIOUS_KEY, {})
    for obj in session.dirty:
        if _table_of(obj) and session.is_modified(obj, include_collections=False):
            before[id(obj)] = _before_update(session, obj)
    for obj in session.deleted:
        if _table_of(obj):
            before[id(obj)] = _before_update(session, obj)


def _collect(session: Session, _flush_context: Any) -> None:
    pending: list[ChangeEvent] = session.info.setdefault(_PENDING_KEY, [])
    before = session.info.pop(_PREVIOUS_KEY, {})
    for obj in session.new:
        table = _table_of(obj)
        if table:
            pending.append(ChangeEvent(table, ChangeEventType.INSERT, _snapshot(obj)))
    for obj in session.dirty:
        table = _table_of(obj)
        if table and session.is_modified(obj, include_collections=False):
            missing, previous = before.get(id(obj), ({}, None))
            record = {**missing, **_snapshot(obj)}
            pending.append(ChangeEvent(table, ChangeEventType.UPDATE, record, old_record=previous))
    for obj in session.deleted:
        table = _table_of(obj)
        if table:
            missing, _previous = before.get(id(obj), ({}, None))
            snapshot = {**missing, **_snapshot(obj)}
            pending.append(ChangeEvent(table, ChangeEventType.DELETE, {}, old_record=snapshot))


def _discard(session: Session, *_args: Any) -> None:
    session.info.pop(_PENDING_KEY, None)
    session.info.pop(_PREVIOUS_KEY, None)


def install_change_capture(feed: ChangeFeed) -> None:
    """Publish committed row changes of the watched tables to ``feed``.

    Changes are buffered per session on flush and only reach the feed once the
    outer transaction commits; a rollback drops them.
    """
    if feed not in _feeds:
        _feeds.append(feed)
    if not event.contains(Session, "after_flush", _collect):
        event.listen(Session, "before_flush", _remember_previous)
        event.listen(Session, "after_flush", _collect)
        event.listen(Session, "after_commit", _publish)
        event.listen(Session, "after_rollback", _discard)


def uninstall_change_capture(feed: ChangeFeed) -> None:
    if feed in _feeds:
        _feeds.remove(feed)


def _publish(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, None)
    for change in pending or ():
        for feed in _feeds:
            feed.publish(change)

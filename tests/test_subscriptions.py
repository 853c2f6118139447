from uuid import uuid4

import pytest
from sqlmodel import Session

from handoff.models.project import Message
from handoff.realtime.feed import ChangeEvent, ChangeEventType, ChangeFeed, RowFilter
from handoff.realtime.subscriptions import ReloadTrigger, SubscriptionManager
from tests.conftest import create_client, create_owner, create_project

pytestmark = pytest.mark.anyio


def _message_event(project_id, content: str = "hi") -> ChangeEvent:
    return ChangeEvent(
        "messages",
        ChangeEventType.INSERT,
        {"id": str(uuid4()), "project_id": str(project_id), "content": content, "is_internal": False},
    )


def test_row_filter_parsing() -> None:
    assert RowFilter.parse("project_id=eq.abc") == RowFilter("project_id", "abc")
    assert RowFilter.parse("project_id=abc") == RowFilter("project_id", "abc")
    assert RowFilter.parse(None) is None
    assert RowFilter("is_internal", "false").matches({"is_internal": False})
    with pytest.raises(ValueError):
        RowFilter.parse("project_id")


async def test_two_subscribers_on_same_project_both_receive() -> None:
    feed = ChangeFeed()
    first = SubscriptionManager(feed, name="first")
    second = SubscriptionManager(feed, name="second")
    project_p, project_q = uuid4(), uuid4()
    received_first: list[ChangeEvent] = []
    received_second: list[ChangeEvent] = []
    received_other: list[ChangeEvent] = []

    first.subscribe("messages", f"project_id=eq.{project_p}", received_first.append)
    second.subscribe("messages", f"project_id={project_p}", received_second.append)
    second.subscribe("messages", f"project_id=eq.{project_q}", received_other.append)

    event = _message_event(project_p)
    assert feed.publish(event) == 2
    await first.drain()
    await second.drain()

    assert received_first == [event]
    assert received_second == [event]
    assert received_other == []

    first.close()
    second.close()
    assert feed.channel_count == 0


async def test_events_on_other_tables_are_not_delivered() -> None:
    feed = ChangeFeed()
    manager = SubscriptionManager(feed)
    project_id = uuid4()
    received: list[ChangeEvent] = []
    manager.subscribe("files", f"project_id=eq.{project_id}", received.append)

    feed.publish(_message_event(project_id))
    await manager.drain()

    assert received == []
    manager.close()


async def test_unsubscribe_twice_is_a_no_op() -> None:
    feed = ChangeFeed()
    manager = SubscriptionManager(feed)
    received: list[ChangeEvent] = []
    handle = manager.subscribe("messages", None, received.append)
    assert feed.channel_count == 1

    handle.unsubscribe()
    handle.unsubscribe()

    assert not handle.active
    assert manager.channel_count == 0
    assert manager.subscription_count == 0
    assert feed.channel_count == 0
    assert feed.publish(_message_event(uuid4())) == 0
    assert received == []


async def test_same_pair_shares_one_channel() -> None:
    feed = ChangeFeed()
    manager = SubscriptionManager(feed)
    project_id = uuid4()
    received: list[str] = []

    def record(event: ChangeEvent) -> None:
        received.append(event.record["content"])

    first = manager.subscribe("messages", f"project_id=eq.{project_id}", record)
    second = manager.subscribe("messages", f"project_id=eq.{project_id}", record)
    assert manager.channel_count == 1
    assert manager.subscription_count == 2

    first.unsubscribe()
    assert manager.channel_count == 1
    feed.publish(_message_event(project_id, "still here"))
    await manager.drain()
    assert received == ["still here"]

    second.unsubscribe()
    assert manager.channel_count == 0


async def test_reload_trigger_coalesces_bursts() -> None:
    calls: list[int] = []

    async def reload() -> None:
        calls.append(1)

    trigger = ReloadTrigger(reload, name="burst")
    for _ in range(5):
        trigger()
    await trigger.wait()

    assert calls == [1]
    assert trigger.runs == 1


async def test_reload_trigger_runs_once_more_for_events_during_reload() -> None:
    calls: list[int] = []

    async def reload() -> None:
        calls.append(1)
        if len(calls) == 1:
            trigger()
            trigger()

    trigger = ReloadTrigger(reload, name="follow-up")
    trigger()
    await trigger.wait()

    assert trigger.runs == 2


async def test_cancelled_trigger_ignores_events() -> None:
    calls: list[int] = []

    async def reload() -> None:
        calls.append(1)

    trigger = ReloadTrigger(reload)
    trigger.cancel()
    trigger()
    await trigger.wait()

    assert calls == []


async def test_committed_rows_reach_subscribers(db_session: Session, feed: ChangeFeed) -> None:
    owner = create_owner(db_session)
    project = create_project(db_session, owner, create_client(db_session, owner))
    manager = SubscriptionManager(feed)
    received: list[ChangeEvent] = []
    manager.subscribe("messages", f"project_id=eq.{project.id}", received.append)

    db_session.add(Message(project_id=project.id, content="rolled back"))
    db_session.flush()
    db_session.rollback()
    db_session.add(Message(project_id=project.id, content="committed"))
    db_session.commit()
    await manager.drain()

    assert [event.record["content"] for event in received] == ["committed"]
    assert received[0].event_type == ChangeEventType.INSERT
    assert received[0].record["project_id"] == str(project.id)
    manager.close()


async def test_updates_carry_previous_values(db_session: Session, feed: ChangeFeed) -> None:
    owner = create_owner(db_session)
    project = create_project(db_session, owner, create_client(db_session, owner))
    manager = SubscriptionManager(feed)
    received: list[ChangeEvent] = []
    manager.subscribe("projects", f"owner_user_id=eq.{owner.id}", received.append)

    project.name = "Renamed"
    db_session.add(project)
    db_session.commit()
    await manager.drain()

    assert len(received) == 1
    assert received[0].event_type == ChangeEventType.UPDATE
    assert received[0].record["name"] == "Renamed"
    assert received[0].old_record["name"] == "Redesign"
    manager.close()


async def test_update_of_expired_row_reaches_the_filter_it_left(db_session: Session, feed: ChangeFeed) -> None:
    owner = create_owner(db_session)
    acme = create_client(db_session, owner)
    globex = create_client(db_session, owner, name="Globex")
    project = create_project(db_session, owner, acme)
    manager = SubscriptionManager(feed)
    acme_events: list[ChangeEvent] = []
    owner_events: list[ChangeEvent] = []
    manager.subscribe("projects", f"client_id=eq.{acme.id}", acme_events.append)
    manager.subscribe("projects", f"owner_user_id=eq.{owner.id}", owner_events.append)

    db_session.expire(project)
    project.client_id = globex.id
    db_session.add(project)
    db_session.commit()
    await manager.drain()

    assert len(acme_events) == 1
    assert acme_events[0].record["client_id"] == str(globex.id)
    assert acme_events[0].old_record["client_id"] == str(acme.id)
    assert acme_events[0].old_record["id"] == str(project.id)
    assert len(owner_events) == 1
    assert owner_events[0].record["name"] == "Redesign"
    manager.close()


async def test_delete_of_expired_row_carries_its_columns(db_session: Session, feed: ChangeFeed) -> None:
    owner = create_owner(db_session)
    project = create_project(db_session, owner, create_client(db_session, owner))
    message = Message(project_id=project.id, content="bye")
    db_session.add(message)
    db_session.commit()
    manager = SubscriptionManager(feed)
    received: list[ChangeEvent] = []
    manager.subscribe("messages", f"project_id=eq.{project.id}", received.append)

    db_session.delete(message)
    db_session.commit()
    await manager.drain()

    assert len(received) == 1
    assert received[0].event_type == ChangeEventType.DELETE
    assert received[0].old_record["content"] == "bye"
    manager.close()

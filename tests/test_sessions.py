import asyncio
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from handoff.core.errors import (
    InvalidToken,
    PermissionDenied,
    SessionNotReady,
    TransientIOFailure,
    ValidationFailure,
)
from handoff.models.project import Message
from handoff.realtime.feed import ChangeFeed
from handoff.schemas.live import DashboardView, PortalView
from handoff.services.gateway import ScopedQueryGateway
from handoff.services.portal_tokens import PortalTokenService
from handoff.services.scope import OwnerScope
from handoff.sessions import DashboardSessionController, PortalSessionController, SessionState
from tests.conftest import create_client, create_owner, create_project

pytestmark = pytest.mark.anyio


@pytest.fixture()
def portal_setup(db_session: Session) -> dict:
    owner = create_owner(db_session)
    acme = create_client(db_session, owner, name="Acme")
    older = create_project(db_session, owner, acme, name="Website")
    newer = create_project(db_session, owner, acme, name="Mobile app")
    foreign = create_project(db_session, owner, create_client(db_session, owner, name="Globex"), name="Other")
    token = PortalTokenService(db_session).issue(owner.id, acme.id).token
    return {"owner": owner, "acme": acme, "older": older, "newer": newer, "foreign": foreign, "token": token}


async def test_unknown_token_is_terminal_and_queries_nothing(db_engine, feed: ChangeFeed) -> None:
    opened: list[Session] = []

    def counting_factory() -> Session:
        session = Session(db_engine)
        opened.append(session)
        return session

    views: list[PortalView] = []
    controller = PortalSessionController("missing-token", counting_factory, feed, on_change=views.append)
    await controller.start()

    assert controller.state == SessionState.UNAVAILABLE
    assert len(opened) == 1
    assert views[-1].state == "unavailable"
    assert views[-1].error == InvalidToken.default_detail
    assert views[-1].projects == []
    assert feed.channel_count == 0
    with pytest.raises(SessionNotReady):
        await controller.select_project(uuid4())


async def test_portal_start_selects_newest_project(portal_setup: dict, session_factory, feed: ChangeFeed) -> None:
    views: list[PortalView] = []
    controller = PortalSessionController(portal_setup["token"], session_factory, feed, on_change=views.append)
    await controller.start()

    assert controller.state == SessionState.READY
    view = views[-1]
    assert view.branding.org_name == "Studio"
    assert view.client.name == "Acme"
    assert [project.name for project in view.projects] == ["Mobile app", "Website"]
    assert view.active_project_id == portal_setup["newer"].id
    assert view.activity.project.name == "Mobile app"
    # projects + messages/files/invoices of the active project
    assert feed.channel_count == 4
    await controller.close()


async def test_project_switch_replaces_project_feeds(portal_setup: dict, session_factory, feed: ChangeFeed) -> None:
    controller = PortalSessionController(portal_setup["token"], session_factory, feed)
    await controller.start()
    newer_id, older_id = portal_setup["newer"].id, portal_setup["older"].id
    assert {handle.key[1] for handle in controller._project_handles} == {f"project_id=eq.{newer_id}"}

    await controller.select_project(older_id)

    assert {handle.key[1] for handle in controller._project_handles} == {f"project_id=eq.{older_id}"}
    assert controller.subscriptions.channel_count == 4
    assert feed.channel_count == 4
    assert controller.activity.project.id == older_id
    await controller.close()


async def test_portal_cannot_select_foreign_project(portal_setup: dict, session_factory, feed: ChangeFeed) -> None:
    controller = PortalSessionController(portal_setup["token"], session_factory, feed)
    await controller.start()

    with pytest.raises(PermissionDenied):
        await controller.select_project(portal_setup["foreign"].id)
    # The previous selection and its feeds survive a rejected switch.
    assert controller.active_project_id == portal_setup["newer"].id
    assert feed.channel_count == 4
    await controller.close()


async def test_new_messages_reload_the_view(
    portal_setup: dict,
    db_session: Session,
    session_factory,
    feed: ChangeFeed,
) -> None:
    views: list[PortalView] = []
    controller = PortalSessionController(portal_setup["token"], session_factory, feed, on_change=views.append)
    await controller.start()
    project_id = portal_setup["newer"].id

    owner_gateway = ScopedQueryGateway(db_session, OwnerScope(portal_setup["owner"].id))
    owner_gateway.post_message(project_id, "Draft is ready")
    owner_gateway.post_message(project_id, "Internal: double check pricing", is_internal=True)
    await controller.settle()

    contents = [message.content for message in views[-1].activity.messages]
    assert contents == ["Draft is ready"]
    await controller.close()


async def test_portal_send_message(portal_setup: dict, session_factory, feed: ChangeFeed) -> None:
    controller = PortalSessionController(portal_setup["token"], session_factory, feed)
    await controller.start()

    message = await controller.send_message("  Looks great!  ")
    await controller.settle()

    assert message.content == "Looks great!"
    assert message.from_client
    assert controller.activity.messages[-1].id == message.id
    with pytest.raises(ValidationFailure):
        await controller.send_message("   ")
    await controller.close()


async def test_stale_reload_is_discarded(portal_setup: dict, session_factory, feed: ChangeFeed) -> None:
    controller = PortalSessionController(portal_setup["token"], session_factory, feed)
    await controller.start()
    newer_id, older_id = portal_setup["newer"].id, portal_setup["older"].id
    release = asyncio.Event()
    original_run_query = controller._run_query

    async def gated_run_query(fn, *args):
        result = await original_run_query(fn, *args)
        if fn is controller._fetch_activity and args and args[0] == newer_id:
            await release.wait()
        return result

    controller._run_query = gated_run_query
    slow_reload = asyncio.create_task(controller._reload_project())
    await controller.select_project(older_id)
    release.set()
    await slow_reload

    assert controller.active_project_id == older_id
    assert controller.activity.project.id == older_id
    await controller.close()


async def test_close_releases_every_feed(
    portal_setup: dict,
    db_session: Session,
    session_factory,
    feed: ChangeFeed,
) -> None:
    views: list[PortalView] = []
    controller = PortalSessionController(portal_setup["token"], session_factory, feed, on_change=views.append)
    await controller.start()
    assert feed.channel_count == 4

    await controller.close()
    await controller.close()
    seen = len(views)

    assert controller.state == SessionState.TERMINATED
    assert controller.subscriptions.channel_count == 0
    assert feed.channel_count == 0

    db_session.add(Message(project_id=portal_setup["newer"].id, content="after close"))
    db_session.commit()
    await asyncio.sleep(0)
    assert len(views) == seen
    with pytest.raises(SessionNotReady):
        await controller.send_message("too late")


async def test_projects_reassigned_away_are_deselected(
    portal_setup: dict,
    db_session: Session,
    session_factory,
    feed: ChangeFeed,
) -> None:
    controller = PortalSessionController(portal_setup["token"], session_factory, feed)
    await controller.start()
    newer = portal_setup["newer"]

    newer.client_id = portal_setup["foreign"].client_id
    db_session.add(newer)
    db_session.commit()
    await controller.settle()
    await controller.settle()

    assert [project.name for project in controller.projects] == ["Website"]
    assert controller.active_project_id == portal_setup["older"].id
    await controller.close()


async def test_dashboard_session_tracks_owner_rows(db_session: Session, session_factory, feed: ChangeFeed) -> None:
    owner = create_owner(db_session)
    client = create_client(db_session, owner)
    project = create_project(db_session, owner, client)
    views: list[DashboardView] = []
    controller = DashboardSessionController(owner.id, session_factory, feed, on_change=views.append)
    await controller.start()

    assert controller.state == SessionState.READY
    assert views[-1].profile.org_name == "Studio"
    assert views[-1].metrics.projects == 1
    assert views[-1].metrics.clients == 1

    create_project(db_session, owner, client, name="Second")
    await controller.settle()
    assert views[-1].metrics.projects == 2

    await controller.select_project(project.id)
    await controller.send_message("Only for the team", is_internal=True)
    await controller.settle()
    assert [message.content for message in controller.activity.messages] == ["Only for the team"]
    assert controller.activity.messages[0].is_internal

    await controller.sign_out()
    assert controller.state == SessionState.TERMINATED
    assert feed.channel_count == 0


async def test_dashboard_session_for_unknown_user(session_factory, feed: ChangeFeed) -> None:
    views: list[DashboardView] = []
    controller = DashboardSessionController(uuid4(), session_factory, feed, on_change=views.append)
    await controller.start()

    assert controller.state == SessionState.UNAVAILABLE
    assert views[-1].state == "unavailable"
    assert feed.channel_count == 0


def _flaky_factory(db_engine) -> tuple[dict, object]:
    database = {"down": False}

    def factory() -> Session:
        if database["down"]:
            raise OperationalError("SELECT 1", {}, Exception("database is down"))
        return Session(db_engine)

    return database, factory


async def test_failed_reload_keeps_last_view_and_reports_error(
    portal_setup: dict,
    db_session: Session,
    db_engine,
    feed: ChangeFeed,
) -> None:
    database, factory = _flaky_factory(db_engine)
    views: list[PortalView] = []
    controller = PortalSessionController(portal_setup["token"], factory, feed, on_change=views.append)
    await controller.start()
    project_id = portal_setup["newer"].id
    owner_gateway = ScopedQueryGateway(db_session, OwnerScope(portal_setup["owner"].id))

    database["down"] = True
    owner_gateway.post_message(project_id, "Sent while the database was down")
    await controller.settle()

    assert controller.state == SessionState.READY
    assert views[-1].error == TransientIOFailure.default_detail
    assert views[-1].activity.project.id == project_id
    assert views[-1].activity.messages == []

    database["down"] = False
    owner_gateway.post_message(project_id, "Back online")
    await controller.settle()

    assert views[-1].error is None
    assert [message.content for message in views[-1].activity.messages] == [
        "Sent while the database was down",
        "Back online",
    ]
    await controller.close()


async def test_database_failure_during_start_is_unavailable(db_engine, feed: ChangeFeed) -> None:
    database, factory = _flaky_factory(db_engine)
    database["down"] = True
    views: list[PortalView] = []
    controller = PortalSessionController("any-token", factory, feed, on_change=views.append)
    await controller.start()

    assert controller.state == SessionState.UNAVAILABLE
    assert views[-1].error == TransientIOFailure.default_detail
    assert feed.channel_count == 0

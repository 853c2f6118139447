from __future__ import annotations

import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from handoff.core.errors import HandoffError, SessionNotReady, TransientIOFailure
from handoff.db.session import SessionFactory
from handoff.realtime.feed import ChangeFeed
from handoff.realtime.subscriptions import ReloadTrigger, SubscriptionHandle, SubscriptionManager
from handoff.schemas.live import ProjectActivity
from handoff.schemas.project import DownloadUrl
from handoff.services.gateway import ScopedQueryGateway
from handoff.services.scope import Scope
from handoff.services.storage import StorageBackend

T = TypeVar("T")
ViewListener = Callable[[BaseModel], Union[None, Awaitable[None]]]

PROJECT_TABLES = ("messages", "files", "invoices")


class SessionState(str, Enum):
    UNRESOLVED = "unresolved"
    LOADING = "loading"
    READY = "ready"
    UNAVAILABLE = "unavailable"
    TERMINATED = "terminated"


class LiveSession:
    """Shared machinery of the portal and dashboard session controllers.

    A live session owns one SubscriptionManager. Feeds scoped to the active
    project are torn down and reopened on every project switch, and all feeds
    are closed when the session terminates. Change events only trigger
    reloads; the view is always rebuilt from authoritative reads.
    """

    kind = "session"

    def __init__(
        self,
        session_factory: SessionFactory,
        feed: ChangeFeed,
        storage: StorageBackend | None = None,
        on_change: ViewListener | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.storage = storage
        self.on_change = on_change
        self.subscriptions = SubscriptionManager(feed, name=self.kind)
        self.logger = logging.getLogger(f"handoff.sessions.{self.kind}")
        self.state = SessionState.UNRESOLVED
        self.error: str | None = None
        self.scope: Scope | None = None
        self.active_project_id: UUID | None = None
        self.activity: ProjectActivity | None = None
        # Bumped on every project switch and on close; stale reloads compare against it.
        self._generation = 0
        self._project_handles: list[SubscriptionHandle] = []
        self._project_trigger: ReloadTrigger | None = None
        self._triggers: list[ReloadTrigger] = []

    # Plumbing -----------------------------------------------------------
    def view(self) -> BaseModel:
        raise NotImplementedError

    async def _notify(self) -> None:
        if self.on_change is None:
            return
        result = self.on_change(self.view())
        if inspect.isawaitable(result):
            await result

    def _require_ready(self) -> None:
        if self.state != SessionState.READY or self.scope is None:
            raise SessionNotReady()

    async def _run_query(self, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn(gateway, *args)`` on a fresh DB session in the threadpool."""
        scope = self.scope

        def work() -> T:
            try:
                with self.session_factory() as session:
                    gateway = ScopedQueryGateway(session, scope, storage=self.storage)
                    return fn(gateway, *args)
            except SQLAlchemyError as exc:
                raise TransientIOFailure() from exc

        return await run_in_threadpool(work)

    def _trigger(self, name: str, reload: Callable[[], Awaitable[None]]) -> ReloadTrigger:
        trigger = ReloadTrigger(reload, name=f"{self.kind}:{name}")
        self._triggers.append(trigger)
        return trigger

    async def _fail_soft(self, exc: HandoffError) -> None:
        self.logger.warning("Reload failed: %s", exc.detail)
        self.error = exc.detail
        await self._notify()

    # Active project -----------------------------------------------------
    def _close_project_feeds(self) -> None:
        for handle in self._project_handles:
            handle.unsubscribe()
        self._project_handles = []
        if self._project_trigger is not None:
            self._project_trigger.cancel()
            self._triggers.remove(self._project_trigger)
            self._project_trigger = None

    def _open_project_feeds(self, project_id: UUID) -> None:
        self._close_project_feeds()
        trigger = self._trigger(f"project:{project_id}", self._reload_project)
        self._project_trigger = trigger
        for table in PROJECT_TABLES:
            self._project_handles.append(
                self.subscriptions.subscribe(table, f"project_id=eq.{project_id}", trigger)
            )

    @staticmethod
    def _fetch_activity(gateway: ScopedQueryGateway, project_id: UUID) -> ProjectActivity:
        return ProjectActivity(
            project=gateway.get_project(project_id),
            messages=gateway.list_messages(project_id),
            files=gateway.list_files(project_id),
            invoices=gateway.list_invoices(project_id),
            summary=gateway.invoice_summary(project_id),
        )

    async def _reload_project(self) -> None:
        if self.state != SessionState.READY or self.active_project_id is None:
            return
        generation = self._generation
        project_id = self.active_project_id
        try:
            activity = await self._run_query(self._fetch_activity, project_id)
        except HandoffError as exc:
            if generation == self._generation:
                await self._fail_soft(exc)
            return
        if generation != self._generation or project_id != self.active_project_id:
            self.logger.debug("Discarding stale reload for project %s", project_id)
            return
        self.activity = activity
        self.error = None
        await self._notify()

    async def select_project(self, project_id: UUID | str) -> None:
        self._require_ready()
        project_uuid = UUID(str(project_id))
        # Scope check before anything is torn down.
        await self._run_query(lambda gateway: gateway.get_project(project_uuid))
        self._generation += 1
        self.active_project_id = project_uuid
        self.activity = None
        self._open_project_feeds(project_uuid)
        await self._reload_project()

    def _clear_project(self) -> None:
        self._generation += 1
        self._close_project_feeds()
        self.active_project_id = None
        self.activity = None

    async def file_download_url(self, file_id: UUID | str) -> DownloadUrl:
        self._require_ready()
        return await self._run_query(lambda gateway: gateway.file_download_url(file_id))

    # Lifecycle ----------------------------------------------------------
    async def settle(self) -> None:
        """Wait until published events are delivered and triggered reloads finish."""
        await self.subscriptions.drain()
        for trigger in list(self._triggers):
            await trigger.wait()

    async def close(self) -> None:
        if self.state == SessionState.TERMINATED:
            return
        self.state = SessionState.TERMINATED
        self._generation += 1
        self._close_project_feeds()
        self.subscriptions.close()
        for trigger in self._triggers:
            trigger.cancel()
        self._triggers = []
        self.logger.info("%s session terminated", self.kind)

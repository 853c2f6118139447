from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from handoff.core.errors import HandoffError, InvalidToken, TransientIOFailure, ValidationFailure, require_text
from handoff.db.session import SessionFactory
from handoff.models.client import Client
from handoff.realtime.feed import ChangeFeed
from handoff.schemas.client import PortalClient
from handoff.schemas.live import PortalOverview, PortalView
from handoff.schemas.profile import PortalBranding
from handoff.schemas.project import MessageRead, ProjectRead
from handoff.services.gateway import ScopedQueryGateway
from handoff.services.portal_tokens import PortalTokenService
from handoff.services.profile import ProfileService
from handoff.services.scope import PortalScope
from handoff.services.storage import StorageBackend
from handoff.sessions.base import LiveSession, SessionState, ViewListener


def load_portal_overview(gateway: ScopedQueryGateway) -> PortalOverview:
    scope = gateway.scope
    branding = ProfileService(gateway.session).branding(scope.owner_user_id)
    client = gateway.session.get(Client, scope.client_id)
    if client is None:
        raise InvalidToken()
    return PortalOverview(
        branding=branding,
        client=PortalClient.model_validate(client),
        projects=gateway.list_projects_for_client(),
    )


class PortalSessionController(LiveSession):
    """One external client's browser tab, holding one portal token."""

    kind = "portal"

    def __init__(
        self,
        token: str,
        session_factory: SessionFactory,
        feed: ChangeFeed,
        storage: StorageBackend | None = None,
        on_change: ViewListener | None = None,
    ) -> None:
        super().__init__(session_factory, feed, storage=storage, on_change=on_change)
        self.token = token
        self.branding: PortalBranding | None = None
        self.client: PortalClient | None = None
        self.projects: list[ProjectRead] = []

    def view(self) -> PortalView:
        return PortalView(
            state=self.state.value,
            error=self.error,
            branding=self.branding,
            client=self.client,
            projects=self.projects,
            active_project_id=self.active_project_id,
            activity=self.activity,
        )

    def _resolve(self) -> PortalScope:
        try:
            with self.session_factory() as session:
                return PortalTokenService(session).resolve(self.token)
        except SQLAlchemyError as exc:
            raise TransientIOFailure() from exc

    async def start(self) -> None:
        if self.state != SessionState.UNRESOLVED:
            return
        self.state = SessionState.LOADING
        try:
            self.scope = await run_in_threadpool(self._resolve)
            overview = await self._run_query(load_portal_overview)
        except HandoffError as exc:
            # Terminal: nothing else is queried for this token.
            self.state = SessionState.UNAVAILABLE
            self.error = exc.detail
            self.logger.info("Portal session unavailable: %s", exc.detail)
            await self._notify()
            return

        self.branding = overview.branding
        self.client = overview.client
        self.projects = overview.projects
        self.state = SessionState.READY
        projects_trigger = self._trigger("projects", self._reload_projects)
        self.subscriptions.subscribe("projects", f"client_id=eq.{self.scope.client_id}", projects_trigger)

        if self.projects:
            await self.select_project(self.projects[0].id)
        else:
            await self._notify()

    async def _reload_projects(self) -> None:
        if self.state != SessionState.READY:
            return
        try:
            projects = await self._run_query(lambda gateway: gateway.list_projects_for_client())
        except HandoffError as exc:
            await self._fail_soft(exc)
            return
        self.projects = projects
        self.error = None
        visible = {project.id for project in projects}
        if self.active_project_id is not None and self.active_project_id not in visible:
            self._clear_project()
        if self.active_project_id is None and projects:
            await self.select_project(projects[0].id)
            return
        await self._notify()

    async def send_message(self, content: str) -> MessageRead:
        self._require_ready()
        text = require_text(content, "Message content")
        if self.active_project_id is None:
            raise ValidationFailure("No project selected")
        project_id: UUID = self.active_project_id
        message = await self._run_query(lambda gateway: gateway.post_message(project_id, text, None))
        await self._reload_project()
        return message

from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from handoff.core.errors import HandoffError, NotFound, TransientIOFailure, ValidationFailure, require_text
from handoff.db.session import SessionFactory
from handoff.realtime.feed import ChangeFeed
from handoff.schemas.dashboard import DashboardMetrics
from handoff.schemas.live import DashboardView
from handoff.schemas.profile import ProfileRead
from handoff.schemas.project import MessageRead
from handoff.services.auth import AuthService
from handoff.services.dashboard import DashboardService
from handoff.services.gateway import ScopedQueryGateway
from handoff.services.profile import ProfileService
from handoff.services.scope import OwnerScope
from handoff.services.storage import StorageBackend
from handoff.sessions.base import LiveSession, SessionState, ViewListener

OWNER_TABLES = ("projects", "clients", "invoices")


def _load_metrics(gateway: ScopedQueryGateway) -> DashboardMetrics:
    return DashboardService(gateway.session).metrics(gateway.scope.owner_user_id)


class DashboardSessionController(LiveSession):
    """Authenticated owner session: same feeds and reload pattern, scoped by user id."""

    kind = "dashboard"

    def __init__(
        self,
        user_id: UUID,
        session_factory: SessionFactory,
        feed: ChangeFeed,
        storage: StorageBackend | None = None,
        on_change: ViewListener | None = None,
    ) -> None:
        super().__init__(session_factory, feed, storage=storage, on_change=on_change)
        self.user_id = user_id
        self.profile: ProfileRead | None = None
        self.metrics: DashboardMetrics | None = None

    def view(self) -> DashboardView:
        return DashboardView(
            state=self.state.value,
            error=self.error,
            profile=self.profile,
            metrics=self.metrics,
            active_project_id=self.active_project_id,
            activity=self.activity,
        )

    def _load_account(self) -> ProfileRead:
        try:
            with self.session_factory() as session:
                if AuthService(session).get_active_user(self.user_id) is None:
                    raise NotFound("Account not found")
                return ProfileRead.model_validate(ProfileService(session).get(self.user_id))
        except SQLAlchemyError as exc:
            raise TransientIOFailure() from exc

    async def start(self) -> None:
        if self.state != SessionState.UNRESOLVED:
            return
        self.state = SessionState.LOADING
        try:
            self.profile = await run_in_threadpool(self._load_account)
            self.scope = OwnerScope(self.user_id)
            self.metrics = await self._run_query(_load_metrics)
        except HandoffError as exc:
            self.state = SessionState.UNAVAILABLE
            self.error = exc.detail
            self.logger.info("Dashboard session unavailable for %s: %s", self.user_id, exc.detail)
            await self._notify()
            return

        self.state = SessionState.READY
        overview_trigger = self._trigger("overview", self._reload_overview)
        for table in OWNER_TABLES:
            self.subscriptions.subscribe(table, f"owner_user_id=eq.{self.user_id}", overview_trigger)
        profile_trigger = self._trigger("profile", self._reload_profile)
        self.subscriptions.subscribe("profiles", f"id=eq.{self.user_id}", profile_trigger)
        await self._notify()

    async def _reload_overview(self) -> None:
        if self.state != SessionState.READY:
            return
        try:
            self.metrics = await self._run_query(_load_metrics)
        except HandoffError as exc:
            await self._fail_soft(exc)
            return
        self.error = None
        await self._notify()

    async def _reload_profile(self) -> None:
        if self.state != SessionState.READY:
            return
        try:
            self.profile = await run_in_threadpool(self._load_account)
        except HandoffError as exc:
            await self._fail_soft(exc)
            return
        await self._notify()

    async def send_message(self, content: str, is_internal: bool = False) -> MessageRead:
        self._require_ready()
        text = require_text(content, "Message content")
        if self.active_project_id is None:
            raise ValidationFailure("No project selected")
        project_id: UUID = self.active_project_id
        message = await self._run_query(
            lambda gateway: gateway.post_message(project_id, text, self.user_id, is_internal=is_internal)
        )
        await self._reload_project()
        return message

    async def sign_out(self) -> None:
        await self.close()

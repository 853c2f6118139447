from uuid import UUID

from fastapi import APIRouter, WebSocket, status
from starlette.concurrency import run_in_threadpool

from handoff.api.live_socket import serve_live_session
from handoff.core.logging_setup import logger
from handoff.db.session import open_session
from handoff.realtime import change_feed
from handoff.services.auth import AuthService
from handoff.sessions.dashboard import DashboardSessionController

router = APIRouter(tags=["live"])


def _user_id_from_token(token: str) -> UUID | None:
    with open_session() as session:
        try:
            return AuthService(session).user_from_access_token(token).id
        except ValueError:
            return None


@router.websocket("/live")
async def dashboard_live(websocket: WebSocket, access_token: str = "") -> None:
    # Browsers cannot set an Authorization header on WebSocket upgrades.
    await websocket.accept()
    user_id = await run_in_threadpool(_user_id_from_token, access_token) if access_token else None
    if user_id is None:
        logger.info("Dashboard socket rejected: invalid access token")
        await websocket.send_json({"type": "error", "status": 401, "detail": "Invalid token"})
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    controller = DashboardSessionController(user_id, open_session, change_feed)
    await serve_live_session(websocket, controller)

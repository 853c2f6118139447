from handoff.sessions.base import LiveSession, SessionState
from handoff.sessions.dashboard import DashboardSessionController
from handoff.sessions.portal import PortalSessionController

__all__ = [
    "LiveSession",
    "SessionState",
    "DashboardSessionController",
    "PortalSessionController",
]

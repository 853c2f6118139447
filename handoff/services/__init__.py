from handoff.services.auth import AuthService
from handoff.services.dashboard import DashboardService
from handoff.services.gateway import ScopedQueryGateway
from handoff.services.portal_tokens import PortalTokenService
from handoff.services.profile import ProfileService
from handoff.services.scope import OwnerScope, PortalScope

__all__ = [
    "AuthService",
    "DashboardService",
    "ScopedQueryGateway",
    "PortalTokenService",
    "ProfileService",
    "OwnerScope",
    "PortalScope",
]

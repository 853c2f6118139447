from handoff.schemas import auth, client, common, dashboard, invoice, live, profile, project

__all__ = [
    "auth",
    "client",
    "common",
    "dashboard",
    "invoice",
    "live",
    "profile",
    "project",
]

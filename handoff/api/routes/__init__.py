from . import auth, clients, dashboard, files, health, invoices, live, portal, profile, projects, storage

__all__ = [
    "auth",
    "clients",
    "dashboard",
    "files",
    "health",
    "invoices",
    "live",
    "portal",
    "profile",
    "projects",
    "storage",
]

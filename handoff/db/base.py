# noqa: F401 to ensure models are imported for metadata
from handoff.models.client import Client, PortalToken
from handoff.models.invoice import Invoice
from handoff.models.project import FileRecord, Message, Project
from handoff.models.user import Profile, User

__all__ = [
    "Client",
    "PortalToken",
    "Invoice",
    "FileRecord",
    "Message",
    "Project",
    "Profile",
    "User",
]

from __future__ import annotations

from dataclasses import dataclass
from typing import Union
from uuid import UUID


@dataclass(frozen=True)
class OwnerScope:
    """Authenticated dashboard caller: everything owned by one account."""

    owner_user_id: UUID

    @property
    def is_portal(self) -> bool:
        return False


@dataclass(frozen=True)
class PortalScope:
    """Resolved portal token: one client's projects of one owner. Never widened."""

    owner_user_id: UUID
    client_id: UUID

    @property
    def is_portal(self) -> bool:
        return True


Scope = Union[OwnerScope, PortalScope]

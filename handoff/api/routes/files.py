from uuid import UUID

from fastapi import APIRouter, Depends

from handoff.api.deps import get_owner_gateway
from handoff.schemas.project import DownloadUrl
from handoff.services.gateway import ScopedQueryGateway

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{file_id}/download-url", response_model=DownloadUrl)
def create_download_url(file_id: UUID, gateway: ScopedQueryGateway = Depends(get_owner_gateway)) -> DownloadUrl:
    return gateway.file_download_url(file_id)

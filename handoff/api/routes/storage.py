from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlmodel import Session, select
from starlette.concurrency import run_in_threadpool

from handoff.api.deps import get_db
from handoff.models.project import FileRecord
from handoff.services.storage import LocalStorage, get_storage
from handoff.utils.text import content_disposition

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{path:path}")
async def serve_signed_file(
    path: str,
    expires: int,
    signature: str,
    session: Session = Depends(get_db),
) -> Response:
    storage = get_storage()
    if not isinstance(storage, LocalStorage):
        # S3 links are presigned by the bucket itself.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    if not storage.verify(path, expires, signature):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Link expired or invalid")
    record = session.exec(select(FileRecord).where(FileRecord.storage_path == path)).first()
    data = await run_in_threadpool(storage.load_bytes, path)
    filename = record.name if record else path.rsplit("/", 1)[-1]
    media_type = (record.mime_type if record else None) or "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": content_disposition(filename)},
    )

"""Upload router - stores files and serves locally stored ones in dev."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from wecarry.core.config import settings
from wecarry.core.deps import get_current_user, get_db
from wecarry.schemas.upload import FileRead
from wecarry.services import file_service, storage_client
from wecarry.services.access_token_service import CurrentUser
from wecarry.services.file_service import FileStoreError

router = APIRouter()


@router.post("", response_model=FileRead, status_code=201)
async def upload_file(
    file: Annotated[UploadFile, File()],
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Store an uploaded file.

    The file stays unlinked (and is eventually cleaned up) until a post,
    meeting or profile references it.
    """
    content = await file.read()
    try:
        stored = file_service.store_file(db, file.filename or "file", content)
    except FileStoreError as e:
        raise HTTPException(status_code=400, detail={"code": e.code, "message": str(e)})

    return FileRead(
        id=stored.uuid,
        name=stored.name,
        content_type=stored.content_type,
        size=stored.size,
        url=stored.url,
        url_expiration=stored.url_expiration,
    )


@router.get("/local/{file_uuid}/{name}")
def get_local_file(file_uuid: UUID, name: str, db: Session = Depends(get_db)):
    """Serve a file from the local storage backend."""
    if settings.STORAGE_BACKEND != "local":
        raise HTTPException(status_code=404, detail="Not found")
    key = f"{file_uuid}/{name}"
    try:
        content = storage_client.read_local(key)
    except (OSError, ValueError):
        raise HTTPException(status_code=404, detail="Not found")
    stored = file_service.find_file_by_uuid(db, file_uuid)
    return Response(content=content, media_type=stored.content_type)

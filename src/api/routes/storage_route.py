"""Public download of stored chat attachments."""

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from config import CHAT_FILES_BUCKET
from core.dependencies import StorageManagerDep
from core.exceptions import StorageError

router = APIRouter(prefix="/api/storage", tags=["Storage"])

# Buckets reachable without authentication
PUBLIC_BUCKETS = (CHAT_FILES_BUCKET,)


@router.get("/{bucket}/{path:path}", summary="Download public object")
def download_object(bucket: str, path: str, storage: StorageManagerDep) -> FileResponse:
    if bucket not in PUBLIC_BUCKETS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    try:
        file_path = storage.get_file_path(bucket, path)
    except StorageError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return FileResponse(file_path, media_type=storage.guess_content_type(path))

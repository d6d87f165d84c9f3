from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from context import ForumContext
from query_client import blob_file_path
from utils.route_helpers import get_context

router = APIRouter(prefix="/cdn", tags=["cdn"])


@router.get("/{bucket}/{path:path}")
def serve_blob(bucket: str, path: str, ctx: ForumContext = Depends(get_context)):
    """Serve an uploaded file (avatars live under /cdn/avatars/...)"""
    try:
        file_path = blob_file_path(ctx.settings.upload_folder, bucket, path)
    except ValueError:
        raise HTTPException(status_code=404, detail="File not found")

    if not file_path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(file_path)

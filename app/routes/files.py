"""Serve stored PDFs.

Routes:
  GET /uploads/{partition}/{filename}  inline PDF (browser viewer)

The URL shape matches the ``publicUrl`` handed out by the upload route.
"""

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse
from app.storage import PUBLIC_PREFIX, UploadIngestor

router = APIRouter(tags=["files"])


@router.get(f"/{PUBLIC_PREFIX}/{{partition}}/{{filename}}")
def serve_file(request: Request, partition: str, filename: str):
    ingestor: UploadIngestor = request.app.state.ingestor
    f = ingestor.resolve(partition, filename)
    if f is None:
        raise HTTPException(status_code=404, detail="file not found")
    return FileResponse(f, media_type="application/pdf")

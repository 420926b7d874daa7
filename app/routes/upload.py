import logging
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from app.auth import require_admin
from app.models import AdminIdentity, DeleteFilePayload
from app.multipart import MULTIPART_OVERHEAD, MultipartFileReader, multipart_boundary
from app.storage import DEFAULT_PARTITION, UploadError, UploadErrorKind, UploadIngestor

router = APIRouter(prefix="/api/upload", tags=["upload"])
logger = logging.getLogger(__name__)


def _ingestor(request: Request) -> UploadIngestor:
    return request.app.state.ingestor


def _base_url(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


def _declared_length(request: Request) -> int | None:
    raw = request.headers.get("content-length", "")
    return int(raw) if raw.isdigit() else None


@router.post("/pdf")
async def api_upload_pdf(
    request: Request,
    partition: str = Query(default=DEFAULT_PARTITION, alias="type"),
    admin: AdminIdentity = Depends(require_admin),
):
    # No File()/Form() parameters: the body is read here, after require_admin.
    ingestor = _ingestor(request)
    max_body = ingestor.max_bytes + MULTIPART_OVERHEAD
    length = _declared_length(request)
    if length is not None and length > max_body:
        raise UploadError(
            UploadErrorKind.TOO_LARGE,
            f"File too large. Maximum size is {ingestor.max_bytes} bytes",
        )
    ingestor.partition_dir(partition)

    boundary = multipart_boundary(request.headers.get("content-type"))
    upload = await MultipartFileReader(request.stream(), boundary, max_body).open()
    stored = await ingestor.ingest(
        upload, upload.content_type, upload.filename, partition, _base_url(request)
    )
    logger.info("admin %s uploaded %s", admin.id, stored.generated_name)
    return JSONResponse(stored.to_response(), status_code=status.HTTP_201_CREATED)


@router.delete("")
def api_delete_file(
    request: Request,
    payload: DeleteFilePayload,
    admin: AdminIdentity = Depends(require_admin),
):
    deleted = _ingestor(request).delete(payload.url)
    if deleted:
        logger.info("admin %s deleted %s", admin.id, payload.url)
    return {"ok": True, "deleted": deleted}

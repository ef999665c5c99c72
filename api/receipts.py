"""Receipt upload and download endpoints."""

from fastapi import APIRouter, File, Request, UploadFile
from starlette.responses import Response

from api.base import success_response


def create_receipts_router(services: dict) -> APIRouter:
    router = APIRouter()

    store = services["receipts"]

    @router.post("/receipts")
    def upload_receipt(request: Request, file: UploadFile = File(...)):
        # One byte past the limit is enough to reject oversized uploads
        data = file.file.read(store.max_bytes + 1)
        content_type = file.content_type or "application/octet-stream"

        ref = store.store(data, content_type)

        return success_response(
            {"receipt_ref": ref},
            request_id=getattr(request.state, "request_id", None),
        ).model_dump(mode="json")

    @router.get("/receipts/{ref}")
    def download_receipt(ref: str):
        data = store.retrieve(ref)
        return Response(content=data, media_type=store.content_type(ref))

    return router

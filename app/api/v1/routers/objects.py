"""Object API router.

Lists the caller's object keys and uploads new objects into the caller's
namespace. The namespace is the authenticated user id.
"""

from __future__ import annotations

import logging
from typing import List
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from starlette.datastructures import UploadFile

from app.api.v1.deps import RequestContext, get_request_context, get_services
from app.app.services.base import MultipartProtocolError
from app.app.services.bundle import ServiceBundle
from app.app.services.chunker import iter_upload_file
from app.common.config import get_settings
from app.infra.storage.client import StorageError

router = APIRouter()
logger = logging.getLogger("http")

FILE_FIELD = "file"


@router.get(
    "/objects",
    response_model=List[str],
    summary="List objects",
    description="List the keys of all objects in the caller's namespace.",
)
async def list_objects(
    ctx: RequestContext = Depends(get_request_context),
    services: ServiceBundle = Depends(get_services),
) -> List[str]:
    user_id = ctx.user_id
    if not user_id:
        # the authentication layer guarantees an identity on this route
        raise HTTPException(status_code=500, detail="Request identity unavailable")

    try:
        return await services.listing().list_object_keys(user_id)
    except StorageError as exc:
        raise HTTPException(status_code=500, detail="Failed to list objects") from exc


@router.post(
    "/objects",
    status_code=status.HTTP_201_CREATED,
    response_class=Response,
    summary="Upload object",
    description=(
        "Upload the multipart/form-data field `file` into the caller's namespace. "
        "The Location header points at the new object."
    ),
)
async def upload_object(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    services: ServiceBundle = Depends(get_services),
) -> Response:
    user_id = ctx.user_id
    if not user_id:
        raise HTTPException(status_code=400, detail="Missing user identity")

    settings = get_settings()
    async with request.form() as form:
        upload = form.get(FILE_FIELD)
        if not isinstance(upload, UploadFile):
            raise HTTPException(
                status_code=400, detail=f"Missing form file field '{FILE_FIELD}'"
            )
        filename = (upload.filename or "").strip()
        if not filename:
            raise HTTPException(status_code=400, detail="Uploaded file has no filename")

        logger.info(
            "upload_requested user_id=%s filename=%s request_id=%s",
            user_id,
            filename,
            ctx.request_id,
            extra={
                "extra": {
                    "user_id": user_id,
                    "filename": filename,
                    "request_id": ctx.request_id,
                }
            },
        )

        try:
            key = await services.upload().upload_object(
                user_id,
                filename,
                iter_upload_file(upload, settings.UPLOAD_READ_CHUNK_BYTES),
                content_type=upload.content_type,
            )
        except (StorageError, MultipartProtocolError) as exc:
            raise HTTPException(status_code=500, detail="Failed to upload object") from exc

    location = f"{request.url.path}/{quote(key, safe='/')}"
    return Response(status_code=status.HTTP_201_CREATED, headers={"Location": location})

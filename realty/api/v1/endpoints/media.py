from fastapi import APIRouter, Body, Depends, File, Query, Response, UploadFile

from realty.services.auth import Actor, get_actor
from realty.services.media import MediaIngestionService, UploadedImage
from realty.services.providers import get_media_service
from realty.services.storage import RawFile
from realty.schemas.media import (
    DimensionsOut,
    FailedDeleteOut,
    FailedFileOut,
    RemovedImageData,
    RemovedImagesData,
    RemoveImageRequest,
    RemoveImageResponse,
    RemoveImagesRequest,
    RemoveImagesResponse,
    SizeOut,
    UploadBatchData,
    UploadedImageOut,
    UploadImageResponse,
    UploadImagesResponse,
)

router = APIRouter()

MULTI_STATUS = 207


async def _raw_file(upload: UploadFile, owner_id: str) -> RawFile:
    data = await upload.read()
    return RawFile(
        filename=upload.filename or "",
        content_type=upload.content_type or "",
        data=data,
        size=len(data),
        owner_id=owner_id,
    )


def _uploaded_out(img: UploadedImage) -> UploadedImageOut:
    return UploadedImageOut(
        url=img.url,
        key=img.key,
        size=SizeOut(original=img.original_size, optimized=img.optimized_size, reduction=img.reduction),
        format=img.format,
        dimensions=DimensionsOut(width=img.target_width, height=img.target_height),
        pixels=DimensionsOut(width=img.width, height=img.height),
        last_modified=img.last_modified,
    )


@router.post("/upload-image", response_model=UploadImageResponse)
async def upload_image(
    image: UploadFile | None = File(default=None),
    profile: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    media: MediaIngestionService = Depends(get_media_service),
) -> UploadImageResponse:
    raw = await _raw_file(image, actor.user_id) if image is not None else None
    uploaded = await media.upload_image(actor.user_id, raw, profile)
    return UploadImageResponse(data=_uploaded_out(uploaded))


@router.post("/upload-images", response_model=UploadImagesResponse)
async def upload_images(
    response: Response,
    images: list[UploadFile] | None = File(default=None),
    profile: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    media: MediaIngestionService = Depends(get_media_service),
) -> UploadImagesResponse:
    raws = [await _raw_file(f, actor.user_id) for f in images or []]
    result = await media.upload_images(actor.user_id, raws, profile)

    if result.status == "partial":
        response.status_code = MULTI_STATUS
    return UploadImagesResponse(
        status=result.status,
        data=UploadBatchData(
            successful=[_uploaded_out(i) for i in result.successful],
            failed=[FailedFileOut(filename=f.item, error=f.message) for f in result.failed],
        ),
    )


@router.delete("/remove-image", response_model=RemoveImageResponse)
async def remove_image(
    payload: RemoveImageRequest | None = Body(default=None),
    actor: Actor = Depends(get_actor),
    media: MediaIngestionService = Depends(get_media_service),
) -> RemoveImageResponse:
    key = payload.key if payload else None
    deleted_at = await media.remove_image(actor.user_id, key)
    return RemoveImageResponse(data=RemovedImageData(key=key, deleted_at=deleted_at))


@router.delete("/remove-images", response_model=RemoveImagesResponse)
async def remove_images(
    response: Response,
    payload: RemoveImagesRequest | None = Body(default=None),
    actor: Actor = Depends(get_actor),
    media: MediaIngestionService = Depends(get_media_service),
) -> RemoveImagesResponse:
    keys = payload.keys if payload else None
    result = await media.remove_images(actor.user_id, keys)

    if result.status == "partial":
        response.status_code = MULTI_STATUS
        return RemoveImagesResponse(
            status="partial",
            message="Some images were deleted successfully",
            data=RemovedImagesData(
                deleted_count=len(result.deleted),
                failed_count=len(result.failed),
                failed_deletes=[FailedDeleteOut(key=f.item, error=f.message) for f in result.failed],
                deleted_at=result.deleted_at,
            ),
        )

    return RemoveImagesResponse(
        status="success",
        message="All images were successfully deleted",
        data=RemovedImagesData(deleted_count=len(result.deleted), deleted_at=result.deleted_at),
    )

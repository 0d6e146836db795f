from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class SizeOut(BaseModel):
    original: int
    optimized: int
    reduction: int
    unit: Literal["%"] = "%"


class DimensionsOut(BaseModel):
    width: int
    height: int


class UploadedImageOut(BaseModel):
    url: str
    key: str
    size: SizeOut
    format: str
    dimensions: DimensionsOut = Field(description="Target box of the optimization profile.")
    pixels: DimensionsOut = Field(description="Actual dimensions of the stored image.")
    last_modified: datetime


class UploadImageResponse(BaseModel):
    status: Literal["success"] = "success"
    data: UploadedImageOut


class FailedFileOut(BaseModel):
    filename: str
    error: str


class UploadBatchData(BaseModel):
    successful: list[UploadedImageOut]
    failed: list[FailedFileOut]


class UploadImagesResponse(BaseModel):
    status: Literal["success", "partial"]
    data: UploadBatchData


class RemoveImageRequest(BaseModel):
    key: Any = None


class RemoveImagesRequest(BaseModel):
    keys: Any = None


class RemovedImageData(BaseModel):
    key: str
    deleted_at: datetime


class RemoveImageResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str = "Image successfully deleted"
    data: RemovedImageData


class FailedDeleteOut(BaseModel):
    key: str
    error: str


class RemovedImagesData(BaseModel):
    deleted_count: int
    failed_count: int = 0
    failed_deletes: list[FailedDeleteOut] = Field(default_factory=list)
    deleted_at: datetime


class RemoveImagesResponse(BaseModel):
    status: Literal["success", "partial"]
    message: str
    data: RemovedImagesData

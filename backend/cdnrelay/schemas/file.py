from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class FileInfo(BaseModel):
    id: str
    filename: str
    original_name: str = Field(alias="originalName")
    size: int
    mimetype: str | None
    upload_date: datetime | None = Field(alias="uploadDate")
    public_url: str = Field(alias="publicUrl")
    cloudku_url: str = Field(alias="cloudKuUrl")
    cloudku_filename: str = Field(alias="cloudKuFilename")

    class Config:
        populate_by_name = True


class FileInfoResponse(BaseModel):
    status: Literal["success"] = "success"
    data: FileInfo


class FileListResponse(BaseModel):
    status: Literal["success"] = "success"
    data: list[FileInfo]
    count: int
    limit: int
    offset: int


class UploadResponse(BaseModel):
    status: Literal["success"] = "success"
    url: str
    filename: str
    original_name: str = Field(alias="originalName")
    cloudku_url: str = Field(alias="cloudKuUrl")
    cloudku_filename: str = Field(alias="cloudKuFilename")
    size: int
    mimetype: str | None

    class Config:
        populate_by_name = True


class Stats(BaseModel):
    total_files: int = Field(alias="totalFiles")
    total_size: int = Field(alias="totalSize")
    total_size_mb: str = Field(alias="totalSizeMB")

    class Config:
        populate_by_name = True


class StatsResponse(BaseModel):
    status: Literal["success"] = "success"
    data: Stats


class MessageResponse(BaseModel):
    status: str
    message: str

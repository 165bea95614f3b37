from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime

# Wire format is camelCase (uploadedAt, originalname stays as-is)
CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# ─────────────────────────────────────────────────────────────────────────────
# 1. Uploaded File
# ─────────────────────────────────────────────────────────────────────────────
class UploadedFile(BaseModel):
    id: str = Field(examples=["1718000000000k3j9x0abc"])
    filename: str = Field(examples=["photo-1718000000000-123456789.jpg"])
    originalname: str = Field(examples=["IMG_0001.jpg"])
    size: int = Field(examples=[2048])
    mimetype: str = Field(examples=["image/jpeg"])
    url: str = Field(examples=["/uploads/photo-1718000000000-123456789.jpg"])
    uploaded_at: datetime

    model_config = CAMEL_CONFIG

# ─────────────────────────────────────────────────────────────────────────────
# 2. Upload Response
# ─────────────────────────────────────────────────────────────────────────────
class UploadResponse(BaseModel):
    success: bool = Field(default=True, examples=[True])
    file: UploadedFile
    message: str = Field(default="File uploaded successfully")

# ─────────────────────────────────────────────────────────────────────────────
# 3. Listing
# ─────────────────────────────────────────────────────────────────────────────
class FileEntry(BaseModel):
    filename: str
    url: str
    size: int
    uploaded_at: datetime

    model_config = CAMEL_CONFIG


class FileListResponse(BaseModel):
    files: list[FileEntry]

# ─────────────────────────────────────────────────────────────────────────────
# 4. Delete Response
# ─────────────────────────────────────────────────────────────────────────────
class DeleteResponse(BaseModel):
    success: bool = True
    message: str = Field(default="File deleted")



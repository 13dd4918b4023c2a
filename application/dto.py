"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输

对外 JSON 字段使用 camelCase（originalName、sizeBytes ...），与上传页脚本保持一致。
"""
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from domain.image import UploadedFileDescriptor


class DTOBase(BaseModel):
    """Base DTO: camelCase aliases, immutable."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UploadedFileDTO(DTOBase):
    """单个成功上传的文件"""
    original_name: str
    generated_name: str
    url: str
    size_bytes: int
    mime_type: str

    @classmethod
    def from_descriptor(cls, d: UploadedFileDescriptor) -> "UploadedFileDTO":
        return cls(
            original_name=d.original_name,
            generated_name=d.generated_name,
            url=d.url,
            size_bytes=d.size_bytes,
            mime_type=d.mime_type,
        )


class UploadResponseDTO(DTOBase):
    """上传响应：errors 仅在部分文件失败时出现"""
    success: Literal[True] = True
    files: list[UploadedFileDTO]
    errors: Optional[list[str]] = None


class ImageItemDTO(DTOBase):
    url: str
    name: str


class ImageListResponseDTO(DTOBase):
    success: Literal[True] = True
    files: list[ImageItemDTO]

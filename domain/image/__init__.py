"""Image domain exports."""
from .entity import UploadedFileDescriptor, ImageEntry, DirectoryListing
from .rules import (
    IMAGE_EXTENSIONS,
    content_type_for,
    extension_of,
    is_image_file,
    generate_file_name,
    normalize_storage_path,
)

__all__ = [
    "UploadedFileDescriptor",
    "ImageEntry",
    "DirectoryListing",
    "IMAGE_EXTENSIONS",
    "content_type_for",
    "extension_of",
    "is_image_file",
    "generate_file_name",
    "normalize_storage_path",
]

"""
Transform registry.

Maps a mime type to the transform that rewrites files of that kind before
they are stored. The mime type is resolved once per job to a `MimeCategory`;
categories without a transform are stored as-is.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Protocol

from uploads_api.config.settings import Settings


class MimeCategory(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    ARCHIVE = "archive"
    OTHER = "other"


ARCHIVE_MIME_TYPES = frozenset({
    "application/zip",
    "application/x-zip-compressed",
    "application/vnd.rar",
    "application/x-rar-compressed",
    "application/x-7z-compressed",
    "application/x-tar",
    "application/gzip",
    "application/x-gzip",
})


def categorize(mime_type: Optional[str]) -> MimeCategory:
    """Resolve a mime type to its category. Parameters and case are ignored."""
    if not mime_type:
        return MimeCategory.OTHER
    essence = mime_type.split(";", 1)[0].strip().lower()
    if essence.startswith("image/"):
        return MimeCategory.IMAGE
    if essence == "application/pdf":
        return MimeCategory.PDF
    if essence in ARCHIVE_MIME_TYPES:
        return MimeCategory.ARCHIVE
    return MimeCategory.OTHER


@dataclass(frozen=True)
class TransformResult:
    """Replacement bytes produced by a transform."""
    data: bytes
    extension: str
    content_type: str


class Transform(Protocol):
    """Rewrites a file's bytes, or returns None to keep the original."""

    def __call__(self, data: bytes) -> Optional[TransformResult]:
        ...


class TransformRegistry:
    def __init__(self, transforms: Optional[Dict[MimeCategory, Transform]] = None):
        self._transforms: Dict[MimeCategory, Transform] = dict(transforms or {})

    def register(self, category: MimeCategory, transform: Transform) -> None:
        self._transforms[category] = transform

    def lookup(self, mime_type: Optional[str]) -> Optional[Transform]:
        return self.lookup_category(categorize(mime_type))

    def lookup_category(self, category: MimeCategory) -> Optional[Transform]:
        return self._transforms.get(category)


def default_registry(settings: Settings) -> TransformRegistry:
    from file_workers.transforms.documents import decline_archive, decline_pdf
    from file_workers.transforms.image import ImageTransform

    transforms: Dict[MimeCategory, Callable[[bytes], Optional[TransformResult]]] = {
        MimeCategory.IMAGE: ImageTransform(
            max_dimension=settings.image_max_dimension,
            quality=settings.image_quality,
        ),
        MimeCategory.PDF: decline_pdf,
        MimeCategory.ARCHIVE: decline_archive,
    }
    return TransformRegistry(transforms)

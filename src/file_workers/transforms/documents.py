"""Placeholders for document and archive processing: files are stored unchanged."""

from typing import Optional

from file_workers.transforms import TransformResult


def decline_pdf(data: bytes) -> Optional[TransformResult]:
    return None


def decline_archive(data: bytes) -> Optional[TransformResult]:
    return None

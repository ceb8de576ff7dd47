import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

from file_workers.transforms import TransformResult
from uploads_api.exceptions import TransformError
from uploads_api.utils.decorators import log_execution_time

logger = logging.getLogger(__name__)

WEBP_EXTENSION = "webp"
WEBP_CONTENT_TYPE = "image/webp"


class ImageTransform:
    """Re-encode an image as WebP, shrinking it to fit `max_dimension`.

    Images already within the bound keep their dimensions; nothing is upscaled.
    """

    def __init__(self, max_dimension: int = 2560, quality: int = 80):
        self.max_dimension = max_dimension
        self.quality = quality

    @log_execution_time
    def __call__(self, data: bytes) -> Optional[TransformResult]:
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                original_size = img.size

                if img.mode not in ("RGB", "RGBA"):
                    has_alpha = img.mode in ("LA", "PA") or (
                        img.mode == "P" and "transparency" in img.info
                    )
                    img = img.convert("RGBA" if has_alpha else "RGB")

                # thumbnail() keeps the aspect ratio and never enlarges
                img.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)

                output = io.BytesIO()
                img.save(output, format="WEBP", quality=self.quality)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise TransformError(f"Cannot convert image: {e}") from e

        encoded = output.getvalue()
        logger.info(
            f"Converted {original_size[0]}x{original_size[1]} image to WebP "
            f"{img.size[0]}x{img.size[1]} ({len(data)} -> {len(encoded)} bytes)"
        )
        return TransformResult(data=encoded, extension=WEBP_EXTENSION, content_type=WEBP_CONTENT_TYPE)

"""
ImageTransformer - Resizes and re-encodes photos for canonical storage.
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from .exceptions import ItemError


@dataclass
class TransformResult:
    """
    Output of a single transform.

    Attributes:
        data: Re-encoded image bytes
        width: Final width in pixels
        height: Final height in pixels
        original_width: Width of the decoded source image
        original_height: Height of the decoded source image
        original_size: Size of the source bytes
        content_type: MIME type of ``data``
    """
    data: bytes
    width: int
    height: int
    original_width: int
    original_height: int
    original_size: int
    content_type: str = 'image/webp'

    @property
    def processed_size(self) -> int:
        return len(self.data)


class ImageTransformer:
    """
    Normalizes photos using Pillow.

    Every photo is scaled down to ``max_width`` (never up) and re-encoded
    as WebP so stored files share one codec and quality setting.
    """

    OUTPUT_FORMAT = 'WEBP'
    CONTENT_TYPE = 'image/webp'
    EXTENSION = '.webp'

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def process(
        self,
        image_data: bytes,
        max_width: int,
        quality: int
    ) -> TransformResult:
        """
        Resize and re-encode an image.

        Args:
            image_data: Original image as bytes
            max_width: Maximum output width; narrower images keep their width
            quality: WebP quality (1-100)

        Returns:
            TransformResult with the encoded bytes and final dimensions

        Raises:
            ItemError: If the bytes cannot be decoded or encoded
        """
        try:
            img = Image.open(io.BytesIO(image_data))
            img.load()
            original_width, original_height = img.size

            img = self._convert_color_mode(img)
            img = self._resize(img, max_width)

            output = io.BytesIO()
            img.save(output, format=self.OUTPUT_FORMAT, quality=quality, method=4)
        except Exception as e:
            self.logger.error(f"Error transforming image: {e}")
            raise ItemError(f"Image transform failed: {e}") from e

        return TransformResult(
            data=output.getvalue(),
            width=img.size[0],
            height=img.size[1],
            original_width=original_width,
            original_height=original_height,
            original_size=len(image_data),
            content_type=self.CONTENT_TYPE,
        )

    @staticmethod
    def target_size(width: int, height: int, max_width: int) -> tuple:
        """Compute output dimensions, preserving aspect ratio."""
        if max_width <= 0 or width <= max_width:
            return width, height
        new_height = max(1, round(height * max_width / width))
        return max_width, new_height

    def _resize(self, img: Image.Image, max_width: int) -> Image.Image:
        size = self.target_size(img.size[0], img.size[1], max_width)
        if size == img.size:
            return img
        return img.resize(size, Image.Resampling.LANCZOS)

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """Flatten transparency onto white and convert to RGB."""
        if img.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            if img.mode == 'LA':
                img = img.convert('RGBA')
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode == 'P':
            img = img.convert('RGBA')
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode != 'RGB':
            return img.convert('RGB')
        return img

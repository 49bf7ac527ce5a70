import logging
import pathlib

from PIL import Image

from config import PIXEL_SIZE

logger = logging.getLogger(__name__)


def pixelate(image: Image.Image, block_size: int = PIXEL_SIZE) -> Image.Image:
    """Quantize an image into square blocks of their average colour.

    Edge blocks that do not fill a whole square are averaged over the
    pixels they cover.
    """
    if block_size < 1:
        raise ValueError(f"Invalid block size: {block_size}")
    if block_size == 1:
        return image.copy()

    if image.mode not in ("L", "LA", "RGB", "RGBA"):
        image = image.convert("RGBA")

    width, height = image.size
    small = image.reduce(block_size)
    blocks = small.resize(
        (small.width * block_size, small.height * block_size), Image.Resampling.NEAREST
    )
    return blocks.crop((0, 0, width, height))


def pixelate_file(
    input_path: pathlib.Path, output_path: pathlib.Path, block_size: int = PIXEL_SIZE
) -> pathlib.Path:
    """Pixelate an image file and save the result."""
    with Image.open(input_path) as image:
        result = pixelate(image.convert("RGBA"), block_size)
    result.save(output_path)
    logger.info(f"Pixelated image saved to: {output_path}")
    return pathlib.Path(output_path)

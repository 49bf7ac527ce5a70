"""Destination rectangles for each layer role.

The constants encode a fixed head-and-shoulders layout shared by every
generated set, so they are not derived from image content:

- background: stretched to the full canvas.
- base (head): fit inside the canvas, centred, 40% of the spare height above.
- feature (eyes): at most 80% of canvas width and 50% of its height, top at 30%.
- outfit (clothing): fit within 90%, then stretched 1.15x wider, top at 10%.
- accessory and anything else: at most 70% width and 50% height, top at
  20%, except hats (5%), neck (69%) and binky (40%).
"""

from dataclasses import dataclass
from typing import Tuple

from layers import Role

OUTFIT_WIDTH_STRETCH = 1.15

ACCESSORY_TOPS = {
    "hats": 0.05,
    "neck": 0.69,
    "binky": 0.4,
}
DEFAULT_ACCESSORY_TOP = 0.2


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    def box(self) -> Tuple[int, int, int, int]:
        """Integer (x, y, width, height), with width and height at least 1."""
        return (
            int(round(self.x)),
            int(round(self.y)),
            max(1, int(round(self.w))),
            max(1, int(round(self.h))),
        )


def place(
    role: Role,
    category: str,
    image_width: float,
    image_height: float,
    canvas_width: float,
    canvas_height: float,
) -> Rect:
    """Compute where a layer image lands on the canvas."""
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Invalid image size {image_width}x{image_height} for {category}")

    role = Role(role)

    if role is Role.BACKGROUND:
        return Rect(0, 0, canvas_width, canvas_height)

    if role is Role.BASE:
        scale = min(canvas_width / image_width, canvas_height / image_height)
        w, h = image_width * scale, image_height * scale
        return Rect((canvas_width - w) / 2, (canvas_height - h) * 0.4, w, h)

    if role is Role.FEATURE:
        scale = min(
            canvas_width / image_width * 0.8, canvas_height / image_height * 0.5
        )
        w, h = image_width * scale, image_height * scale
        return Rect((canvas_width - w) / 2, canvas_height * 0.3, w, h)

    if role is Role.OUTFIT:
        height_scale = min(
            canvas_width / image_width * 0.9, canvas_height / image_height * 0.9
        )
        width_scale = height_scale * OUTFIT_WIDTH_STRETCH
        w, h = image_width * width_scale, image_height * height_scale
        return Rect((canvas_width - w) / 2, canvas_height * 0.1, w, h)

    # accessory, special
    scale = min(canvas_width / image_width * 0.7, canvas_height / image_height * 0.5)
    w, h = image_width * scale, image_height * scale
    top = ACCESSORY_TOPS.get(category, DEFAULT_ACCESSORY_TOP)
    return Rect((canvas_width - w) / 2, canvas_height * top, w, h)

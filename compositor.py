"""
Frame compositor.

Draws one 500x500 product image for a dimension record:

1. White background
2. Product photo, contain-scaled and centred (or a placeholder)
3. Title banner with the product title and the size string
4. One pill per dimension label at its anchor position

Every call builds a new surface, so the same inputs always produce the same
pixels.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFilter, ImageOps

from dimensions import DimensionRecord
from layout import (
    LABEL_FONT_SIZE,
    OUTPUT_SIZE,
    TITLE_RADIUS,
    AnchorPosition,
    LabelKind,
    build_title,
    fit_title,
    label_pills,
    load_font,
)

BACKGROUND_COLOR = "#FFFFFF"
PLACEHOLDER_BACKGROUND = "#f1f5f9"
PLACEHOLDER_TEXT_COLOR = "#94a3b8"
PLACEHOLDER_TEXT = "Upload een afbeelding"
PLACEHOLDER_FONT_SIZE = 20

TITLE_BACKGROUND = (255, 255, 255, 242)  # 95% white
TITLE_TEXT_COLOR = "#0f172a"
TITLE_SHADOW = (0, 0, 0, 51)
TITLE_SHADOW_BLUR = 4
TITLE_SHADOW_OFFSET_Y = 2

LABEL_BACKGROUND = (255, 255, 255, 255)
LABEL_TEXT_COLOR = "#1e293b"
LABEL_SHADOW = (0, 0, 0, 77)
LABEL_SHADOW_BLUR = 6
LABEL_SHADOW_OFFSET_Y = 3
LABEL_OUTLINE_WIDTH = 3

# Text sits slightly below the geometric centre of its box
TEXT_BASELINE_NUDGE = 2


@dataclass(frozen=True, eq=False)
class SourceImage:
    """Decoded product photo. Replaced wholesale on re-upload."""
    pixels: Image.Image  # RGBA
    width: int
    height: int


def load_source_image(source) -> SourceImage:
    """
    Decode a product photo from a path or binary file object.

    EXIF orientation is applied so the photo is drawn the way it was shot.
    """
    with Image.open(source) as img:
        img = ImageOps.exif_transpose(img)
        rgba = img.convert("RGBA")
    rgba.load()
    name = source if isinstance(source, (str, Path)) else getattr(source, "name", "<stream>")
    logging.info("Loaded source image %s (%dx%d)", name, rgba.width, rgba.height)
    return SourceImage(pixels=rgba, width=rgba.width, height=rgba.height)


def contain_box(img_width: int, img_height: int, size: int = OUTPUT_SIZE) -> tuple[int, int, int, int]:
    """
    Fit an image inside a size x size square preserving aspect ratio.

    Returns:
        (x, y, width, height) of the scaled image, centred
    """
    scale = min(size / img_width, size / img_height)
    width = max(1, round(img_width * scale))
    height = max(1, round(img_height * scale))
    return round((size - width) / 2), round((size - height) / 2), width, height


def _int_box(bounds) -> tuple[int, int, int, int]:
    left, top, right, bottom = bounds
    return round(left), round(top), round(right), round(bottom)


def _draw_shadow(canvas: Image.Image, box, radius: int, color, blur: float, offset_y: int) -> None:
    """Soft drop shadow: blurred, offset copy of the shape composited underneath."""
    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    left, top, right, bottom = box
    ImageDraw.Draw(layer).rounded_rectangle(
        (left, top + offset_y, right, bottom + offset_y), radius=radius, fill=color
    )
    # A CSS/canvas blur of N px corresponds to a Gaussian sigma of N/2
    layer = layer.filter(ImageFilter.GaussianBlur(radius=blur / 2))
    canvas.alpha_composite(layer)


def _draw_rounded_box(canvas: Image.Image, box, radius: int, fill, outline=None, width: int = 0) -> None:
    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    ImageDraw.Draw(layer).rounded_rectangle(box, radius=radius, fill=fill, outline=outline, width=width)
    canvas.alpha_composite(layer)


def _draw_source(canvas: Image.Image, source: SourceImage) -> None:
    x, y, width, height = contain_box(source.width, source.height, canvas.width)
    scaled = source.pixels.resize((width, height), Image.Resampling.LANCZOS)
    canvas.alpha_composite(scaled, dest=(x, y))


def _draw_placeholder(canvas: Image.Image) -> None:
    draw = ImageDraw.Draw(canvas)
    draw.rectangle((0, 0, canvas.width, canvas.height), fill=PLACEHOLDER_BACKGROUND)
    draw.text(
        (canvas.width / 2, canvas.height / 2),
        PLACEHOLDER_TEXT,
        font=load_font(PLACEHOLDER_FONT_SIZE),
        fill=PLACEHOLDER_TEXT_COLOR,
        anchor="mm",
    )


def _draw_title(canvas: Image.Image, title: str, record: DimensionRecord) -> None:
    box = fit_title(build_title(title, record), canvas.width)
    bounds = _int_box(box.bounds)

    _draw_shadow(canvas, bounds, TITLE_RADIUS, TITLE_SHADOW, TITLE_SHADOW_BLUR, TITLE_SHADOW_OFFSET_Y)
    _draw_rounded_box(canvas, bounds, TITLE_RADIUS, TITLE_BACKGROUND)

    ImageDraw.Draw(canvas).text(
        (box.center_x, box.center_y + TEXT_BASELINE_NUDGE),
        box.text,
        font=load_font(box.font_size),
        fill=TITLE_TEXT_COLOR,
        anchor="mm",
    )


def _draw_labels(canvas: Image.Image, record: DimensionRecord, positions: dict[LabelKind, AnchorPosition]) -> None:
    font = load_font(LABEL_FONT_SIZE)
    for pill in label_pills(record, positions, canvas.size):
        bounds = _int_box(pill.bounds)
        radius = round(pill.radius)

        _draw_shadow(canvas, bounds, radius, LABEL_SHADOW, LABEL_SHADOW_BLUR, LABEL_SHADOW_OFFSET_Y)
        _draw_rounded_box(
            canvas, bounds, radius, LABEL_BACKGROUND,
            outline=pill.kind.color, width=LABEL_OUTLINE_WIDTH,
        )

        ImageDraw.Draw(canvas).text(
            (pill.center_x, pill.center_y + TEXT_BASELINE_NUDGE),
            pill.text,
            font=font,
            fill=LABEL_TEXT_COLOR,
            anchor="mm",
        )


def render_frame(
    record: Optional[DimensionRecord],
    positions: dict[LabelKind, AnchorPosition],
    title: str,
    source: Optional[SourceImage] = None,
    size: int = OUTPUT_SIZE,
) -> Image.Image:
    """
    Render one output frame.

    Args:
        record: Active dimension record, or None when the list is empty
        positions: Anchor position per label kind
        title: Product title (no banner when empty)
        source: Product photo, or None for the placeholder
        size: Canvas edge length in px

    Returns:
        New RGB image of size x size
    """
    canvas = Image.new("RGBA", (size, size), BACKGROUND_COLOR)

    if source is not None:
        _draw_source(canvas, source)
    else:
        _draw_placeholder(canvas)

    if title and record is not None:
        _draw_title(canvas, title, record)

    if record is None:
        return canvas.convert("RGB")

    _draw_labels(canvas, record, positions)
    return canvas.convert("RGB")

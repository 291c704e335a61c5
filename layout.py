"""
Layout and fit calculations for the 500x500 output canvas.

Everything that needs a text width goes through measure_text() with a font
from load_font(), so the fitted title box and the drawn title always agree.

Anchor positions are percentages (0-100) of the canvas width/height and mark
the centre of a label pill.
"""

import functools
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import ImageFont

from dimensions import DimensionRecord

# Fixed output canvas (px)
OUTPUT_SIZE = 500

# Title banner
TITLE_MAX_FONT_SIZE = 24
TITLE_MIN_FONT_SIZE = 12
TITLE_FONT_STEP = 2
TITLE_MARGIN = 40  # Total horizontal margin the text must leave free
TITLE_PADDING = 12  # Per side
TITLE_HEIGHT_FACTOR = 1.8
TITLE_Y = 30  # Banner centre, from top
TITLE_RADIUS = 8

# Label pills
LABEL_FONT_SIZE = 22
LABEL_PADDING_X = 12
LABEL_PADDING_Y = 8

# Bold sans-serif candidates (env override -> Linux -> macOS -> Windows)
FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/Library/Fonts/Arial Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
    "C:/Windows/Fonts/arialbd.ttf",
    "DejaVuSans-Bold.ttf",
]


class LabelKind(Enum):
    """
    The four dimension labels, in draw order.

    Each kind carries (record field, glyph, abbreviation, outline colour,
    default anchor in percent).
    """
    WIDTH = ("width", "\u2194", "", "#2563eb", (50.0, 85.0))
    DEPTH = ("depth", "\u2199", "", "#16a34a", (85.0, 65.0))
    HEIGHT = ("height", "\u2195", "", "#dc2626", (15.0, 50.0))
    FRONT_HEIGHT = ("front_height", "\u2195", "VH", "#f97316", (35.0, 65.0))

    def __init__(self, field, glyph, abbreviation, color, default_anchor):
        self.field = field
        self.glyph = glyph
        self.abbreviation = abbreviation
        self.color = color
        self.default_anchor = default_anchor

    @classmethod
    def from_name(cls, name: str) -> "LabelKind":
        """Accept 'width', 'front_height', 'frontHeight', 'FRONT_HEIGHT', ..."""
        key = name.strip().lower().replace("-", "").replace("_", "")
        for kind in cls:
            if key == kind.field.replace("_", ""):
                return kind
        raise ValueError(f"Unknown label kind: {name!r}")

    def value_of(self, record: DimensionRecord) -> str:
        return getattr(record, self.field)

    def label_text(self, record: DimensionRecord) -> str:
        return f"{self.glyph}{self.abbreviation} {self.value_of(record)} {record.unit}"


@dataclass(frozen=True)
class AnchorPosition:
    """Label centre in percent of the canvas. Always within 0-100."""
    x: float
    y: float

    def __post_init__(self):
        object.__setattr__(self, "x", _clamp_percent(self.x))
        object.__setattr__(self, "y", _clamp_percent(self.y))

    @classmethod
    def clamped(cls, x: float, y: float) -> "AnchorPosition":
        return cls(x=x, y=y)

    def moved_by(self, dx: float, dy: float) -> "AnchorPosition":
        return AnchorPosition.clamped(self.x + dx, self.y + dy)

    def to_pixels(self, width: int, height: int) -> tuple[float, float]:
        return self.x / 100 * width, self.y / 100 * height


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def default_positions() -> dict[LabelKind, AnchorPosition]:
    return {kind: AnchorPosition(*kind.default_anchor) for kind in LabelKind}


@dataclass(frozen=True)
class TitleBox:
    """Fitted title banner."""
    text: str
    font_size: int
    text_width: float
    box_width: float
    box_height: float
    center_x: float
    center_y: float

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        left = self.center_x - self.box_width / 2
        top = self.center_y - self.box_height / 2
        return left, top, left + self.box_width, top + self.box_height


@dataclass(frozen=True)
class LabelPill:
    """Geometry of one label pill, centred on its anchor."""
    kind: LabelKind
    text: str
    center_x: float
    center_y: float
    text_width: float
    box_width: float
    box_height: float

    @property
    def radius(self) -> float:
        return self.box_height / 2

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        left = self.center_x - self.box_width / 2
        top = self.center_y - self.box_height / 2
        return left, top, left + self.box_width, top + self.box_height


def _find_font(candidates: list[str], size: int) -> Optional[ImageFont.FreeTypeFont]:
    """Try loading a font from a list of candidate paths."""
    for path in candidates:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    return None


@functools.lru_cache(maxsize=None)
def load_font(size: int):
    """
    Load the bold sans-serif face at the given pixel size.

    HOES_FONT_PATH wins when set. Falls back to Pillow's bundled font so
    rendering still works on machines without system fonts.
    """
    candidates = list(FONT_CANDIDATES)
    env_font = os.environ.get("HOES_FONT_PATH")
    if env_font:
        candidates.insert(0, env_font)

    font = _find_font(candidates, size)
    if font is None:
        logging.warning("No bold TrueType font found, using Pillow default font (size %d)", size)
        return ImageFont.load_default(size=size)
    logging.debug("Font loaded: %s (size %d)", getattr(font, "path", "?"), size)
    return font


def measure_text(text: str, font) -> float:
    """Advance width of text in px. The only measuring function used for layout and drawing."""
    return font.getlength(text)


def build_title(title: str, record: DimensionRecord) -> str:
    return f"{title} - {record.size_string}"


def fit_title(text: str, canvas_width: int = OUTPUT_SIZE) -> TitleBox:
    """
    Shrink the title font until the text fits the canvas minus the margin.

    Starts at TITLE_MAX_FONT_SIZE and steps down by TITLE_FONT_STEP while the
    text is too wide, stopping at TITLE_MIN_FONT_SIZE even if it still overflows.
    """
    font_size = TITLE_MAX_FONT_SIZE
    text_width = measure_text(text, load_font(font_size))
    while text_width > canvas_width - TITLE_MARGIN and font_size > TITLE_MIN_FONT_SIZE:
        font_size -= TITLE_FONT_STEP
        text_width = measure_text(text, load_font(font_size))

    return TitleBox(
        text=text,
        font_size=font_size,
        text_width=text_width,
        box_width=text_width + TITLE_PADDING * 2,
        box_height=font_size * TITLE_HEIGHT_FACTOR,
        center_x=canvas_width / 2,
        center_y=TITLE_Y,
    )


def label_pills(
    record: DimensionRecord,
    positions: dict[LabelKind, AnchorPosition],
    canvas_size: tuple[int, int] = (OUTPUT_SIZE, OUTPUT_SIZE),
) -> list[LabelPill]:
    """Pill geometry for every label with a value on this record, in draw order."""
    width, height = canvas_size
    font = load_font(LABEL_FONT_SIZE)

    pills = []
    for kind in LabelKind:
        if not kind.value_of(record):
            continue
        anchor = positions.get(kind) or AnchorPosition(*kind.default_anchor)
        x, y = anchor.to_pixels(width, height)
        text = kind.label_text(record)
        text_width = measure_text(text, font)
        pills.append(
            LabelPill(
                kind=kind,
                text=text,
                center_x=x,
                center_y=y,
                text_width=text_width,
                box_width=text_width + LABEL_PADDING_X * 2,
                box_height=LABEL_FONT_SIZE + LABEL_PADDING_Y * 2,
            )
        )
    return pills

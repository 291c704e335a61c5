import pytest
from PIL import Image, ImageDraw

from dimensions import DimensionRecord
from layout import (
    LABEL_FONT_SIZE,
    LABEL_PADDING_X,
    LABEL_PADDING_Y,
    OUTPUT_SIZE,
    TITLE_MARGIN,
    TITLE_MAX_FONT_SIZE,
    TITLE_MIN_FONT_SIZE,
    TITLE_PADDING,
    AnchorPosition,
    LabelKind,
    build_title,
    default_positions,
    fit_title,
    label_pills,
    load_font,
    measure_text,
)

RECORD = DimensionRecord(0, "220", "90", "80")
RECORD_FH = DimensionRecord(1, "180", "90", "75", "60")


@pytest.mark.parametrize("text", [
    "Hoes",
    "Antraciete tafelhoes voor buiten - 220x90x80cm",
    "Antraciete tafelhoes voor buiten met extra lange titel - 180x90x75/60cm",
    "X" * 300,
])
def test_title_font_shrinks_in_steps_of_two_within_bounds(text):
    box = fit_title(text)
    assert TITLE_MIN_FONT_SIZE <= box.font_size <= TITLE_MAX_FONT_SIZE
    assert (TITLE_MAX_FONT_SIZE - box.font_size) % 2 == 0
    if box.font_size > TITLE_MIN_FONT_SIZE:
        assert box.text_width <= OUTPUT_SIZE - TITLE_MARGIN
    if box.font_size < TITLE_MAX_FONT_SIZE:
        # The next size up did not fit
        wider = measure_text(text, load_font(box.font_size + 2))
        assert wider > OUTPUT_SIZE - TITLE_MARGIN


def test_short_title_keeps_max_size_and_long_title_hits_floor():
    assert fit_title("Hoes").font_size == TITLE_MAX_FONT_SIZE
    assert fit_title("W" * 300).font_size == TITLE_MIN_FONT_SIZE


def test_title_box_geometry():
    box = fit_title("Hoes - 220x90x80cm")
    assert box.box_width == pytest.approx(box.text_width + TITLE_PADDING * 2)
    assert box.box_height == pytest.approx(box.font_size * 1.8)
    assert box.center_x == OUTPUT_SIZE / 2
    left, top, right, bottom = box.bounds
    assert right - left == pytest.approx(box.box_width)
    assert (top + bottom) / 2 == pytest.approx(box.center_y)


def test_fitted_width_matches_drawn_text_width():
    text = build_title("Antraciete tafelhoes voor buiten", RECORD_FH)
    box = fit_title(text)
    draw = ImageDraw.Draw(Image.new("RGB", (OUTPUT_SIZE, OUTPUT_SIZE)))
    font = load_font(box.font_size)
    assert draw.textlength(text, font=font) == pytest.approx(box.text_width)
    left, _, right, _ = draw.textbbox((0, 0), text, font=font)
    assert right - left <= box.box_width


def test_build_title():
    assert build_title("Hoes", RECORD) == "Hoes - 220x90x80cm"
    assert build_title("Hoes", RECORD_FH) == "Hoes - 180x90x75/60cm"


def test_label_kinds_carry_style():
    assert [k.field for k in LabelKind] == ["width", "depth", "height", "front_height"]
    assert LabelKind.WIDTH.color == "#2563eb"
    assert LabelKind.FRONT_HEIGHT.abbreviation == "VH"
    assert LabelKind.WIDTH.label_text(RECORD) == "↔ 220 cm"
    assert LabelKind.FRONT_HEIGHT.label_text(RECORD_FH) == "↕VH 60 cm"


@pytest.mark.parametrize("name", ["frontHeight", "front_height", "FRONT_HEIGHT", "front-height"])
def test_label_kind_from_name(name):
    assert LabelKind.from_name(name) is LabelKind.FRONT_HEIGHT


def test_label_kind_from_unknown_name():
    with pytest.raises(ValueError):
        LabelKind.from_name("diagonal")


def test_anchor_clamping():
    assert AnchorPosition.clamped(-5, 150) == AnchorPosition(0.0, 100.0)
    assert AnchorPosition(95, 5).moved_by(20, -20) == AnchorPosition(100.0, 0.0)
    assert AnchorPosition(50, 50).moved_by(10, -10) == AnchorPosition(60.0, 40.0)


def test_anchor_to_pixels():
    assert AnchorPosition(50, 85).to_pixels(500, 500) == (250.0, 425.0)


def test_label_pill_geometry():
    pills = label_pills(RECORD, default_positions())
    assert [p.kind for p in pills] == [LabelKind.WIDTH, LabelKind.DEPTH, LabelKind.HEIGHT]

    width_pill = pills[0]
    assert (width_pill.center_x, width_pill.center_y) == (250.0, 425.0)
    assert width_pill.box_height == LABEL_FONT_SIZE + LABEL_PADDING_Y * 2
    assert width_pill.radius == width_pill.box_height / 2
    assert width_pill.box_width == pytest.approx(
        measure_text(width_pill.text, load_font(LABEL_FONT_SIZE)) + LABEL_PADDING_X * 2
    )


def test_empty_front_height_is_skipped():
    kinds = [p.kind for p in label_pills(RECORD_FH, default_positions())]
    assert kinds[-1] is LabelKind.FRONT_HEIGHT
    assert LabelKind.FRONT_HEIGHT not in [p.kind for p in label_pills(RECORD, default_positions())]


def test_load_font_is_cached():
    assert load_font(22) is load_font(22)


def test_constructed_anchor_is_clamped():
    assert AnchorPosition(150, -20) == AnchorPosition(100, 0)
    assert AnchorPosition(-0.5, 100.5) == AnchorPosition(0, 100)


def test_out_of_range_anchor_keeps_pill_centre_on_canvas():
    positions = default_positions()
    positions[LabelKind.WIDTH] = AnchorPosition(150, -20)
    [pill] = [p for p in label_pills(RECORD, positions) if p.kind is LabelKind.WIDTH]
    assert (pill.center_x, pill.center_y) == (OUTPUT_SIZE, 0)

"""Shared pytest fixtures."""

import io
import logging

import pytest
from PIL import Image

from compositor import load_source_image
from editor_state import EditorState
from export_images import PreviewCanvas

PHOTO_COLOR = (120, 140, 160)


def _photo(size=(400, 400), color=PHOTO_COLOR):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, "PNG")
    buf.seek(0)
    return load_source_image(buf)


@pytest.fixture
def photo():
    """Square, single-colour product photo that covers the whole canvas."""
    return _photo()


@pytest.fixture
def photo_color():
    return PHOTO_COLOR


@pytest.fixture
def wide_photo():
    return _photo(size=(1000, 500))


@pytest.fixture
def state(photo):
    return EditorState(source=photo)


@pytest.fixture
def canvas():
    with PreviewCanvas() as c:
        yield c


@pytest.fixture
def restore_logging():
    """The CLI replaces the root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)

"""
Editor state shared by the preview and the batch export.

One EditorState holds everything a render needs: the product title, the
parsed size list with the active record, the label anchors and the loaded
photo. Every change notifies the subscribed listeners so a preview can be
redrawn straight away.
"""

import logging
from typing import Callable, Optional

from compositor import SourceImage, load_source_image
from dimensions import DimensionRecord, parse_dimensions
from layout import AnchorPosition, LabelKind, default_positions

DEFAULT_TITLE = "Antraciete tafelhoes voor buiten"
DEFAULT_DIMENSIONS_TEXT = "220 x 90 x 80\n210 x 100 x 80\n180 x 90 x 75 / 60"


class EditorState:
    def __init__(
        self,
        title: str = DEFAULT_TITLE,
        dimensions_text: str = DEFAULT_DIMENSIONS_TEXT,
        positions: Optional[dict[LabelKind, AnchorPosition]] = None,
        source: Optional[SourceImage] = None,
    ):
        self.title = title
        self.dimensions_text = dimensions_text
        self.records: list[DimensionRecord] = parse_dimensions(dimensions_text)
        self.active_index = 0
        self.positions = default_positions()
        if positions:
            self.positions.update(positions)
        self.source = source
        self.generating = False
        self._listeners: list[Callable[["EditorState"], None]] = []

    # --- listeners -------------------------------------------------------

    def subscribe(self, listener: Callable[["EditorState"], None]) -> Callable[[], None]:
        """Call listener(state) after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # --- inputs ----------------------------------------------------------

    def set_title(self, title: str) -> None:
        self.title = title
        self._changed()

    def set_dimensions_text(self, text: str) -> None:
        """Re-parse the size list; the preview jumps back to the first record."""
        self.dimensions_text = text
        self.records = parse_dimensions(text)
        self.active_index = 0
        logging.info("Parsed %d size rows", len(self.records))
        self._changed()

    def set_source(self, source: Optional[SourceImage]) -> None:
        self.source = source
        self._changed()

    def load_image(self, path) -> SourceImage:
        source = load_source_image(path)
        self.set_source(source)
        return source

    def select(self, index: int) -> DimensionRecord:
        if not 0 <= index < len(self.records):
            raise IndexError(f"Record index {index} out of range (0..{len(self.records) - 1})")
        self.active_index = index
        self._changed()
        return self.records[index]

    # --- anchors ---------------------------------------------------------

    def move_anchor(self, kind: LabelKind, x: float, y: float) -> AnchorPosition:
        """Place a label at (x, y) percent, clamped to the canvas."""
        position = AnchorPosition.clamped(x, y)
        self.positions[kind] = position
        self._changed()
        return position

    def nudge_anchor(self, kind: LabelKind, dx: float, dy: float) -> AnchorPosition:
        position = self.positions[kind].moved_by(dx, dy)
        self.positions[kind] = position
        self._changed()
        return position

    def drag_to(
        self,
        kind: LabelKind,
        pointer_x: float,
        pointer_y: float,
        rect_width: float,
        rect_height: float,
    ) -> AnchorPosition:
        """
        Move a label to a pointer position inside the displayed canvas.

        The canvas may be shown scaled; pointer coordinates are relative to
        its top-left corner in display pixels. The latest call always wins.
        A collapsed (zero-size) canvas leaves the anchor where it is.
        """
        if rect_width <= 0 or rect_height <= 0:
            return self.positions[kind]
        return self.move_anchor(kind, pointer_x / rect_width * 100, pointer_y / rect_height * 100)

    # --- derived ---------------------------------------------------------

    @property
    def current_record(self) -> Optional[DimensionRecord]:
        if 0 <= self.active_index < len(self.records):
            return self.records[self.active_index]
        return None

    @property
    def record_count(self) -> int:
        return len(self.records)

    @property
    def can_export(self) -> bool:
        return self.source is not None and not self.generating and bool(self.records)

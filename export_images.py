#!/usr/bin/env python3
"""
Hoes Image Exporter - one product image per size line.

Renders the product photo with the title banner and dimension labels for
every line of the size list and writes one image per line:

    hoes-220x90x80.webp
    hoes-180x90x75-60.webp

Records are exported strictly one after another: each record is made active,
the shared canvas is redrawn, and the frame is only encoded once that redraw
has completed.

Usage:
    python export_images.py --image photo.jpg --dimensions sizes.txt
    python export_images.py --image photo.jpg --dimensions-text "220 x 90 x 80" --format jpeg
    python export_images.py --image photo.jpg --dimensions sizes.xlsx --position width=50,90 --preview 0
"""

import argparse
import csv
import io
import logging
import os
import sys
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import openpyxl
from PIL import Image

from compositor import render_frame
from dimensions import DimensionRecord
from editor_state import DEFAULT_TITLE, EditorState
from layout import OUTPUT_SIZE, AnchorPosition, LabelKind

FILENAME_PREFIX = "hoes"
NO_RECORDS_MESSAGE = "Geen maten gevonden."

# Seconds to wait for a redraw before giving up on that record
RENDER_TIMEOUT = 30.0


@dataclass(frozen=True)
class ExportFormat:
    pil_format: str
    extension: str
    quality: int
    save_options: dict = field(default_factory=dict)


EXPORT_FORMATS = {
    "webp": ExportFormat("WEBP", "webp", 92),
    "jpeg": ExportFormat("JPEG", "jpg", 92, {"optimize": True}),
}

DEFAULT_FORMAT = "webp"
MIN_QUALITY, MAX_QUALITY = 1, 100


class ExportError(Exception):
    """Base class for batch export errors."""


class ExportInProgressError(ExportError):
    """An export batch is already running on this state."""


class MissingSourceImageError(ExportError):
    """Export needs a product photo."""


@dataclass(frozen=True)
class RenderedFrame:
    """A finished canvas redraw and the record it was drawn for."""
    record: Optional[DimensionRecord]
    image: Image.Image


@dataclass(frozen=True)
class ExportArtifact:
    record: DimensionRecord
    filename: str
    data: bytes


def _env_format() -> str:
    return os.environ.get("HOES_EXPORT_FORMAT", "").strip().lower() or DEFAULT_FORMAT


def _env_quality() -> Optional[int]:
    """HOES_EXPORT_QUALITY as an int, None when unset. Raises ValueError on junk."""
    value = os.environ.get("HOES_EXPORT_QUALITY", "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"HOES_EXPORT_QUALITY must be a whole number, got {value!r}")


def _check_export_settings(fmt: str, quality: Optional[int]) -> None:
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format: {fmt!r} (choose from {sorted(EXPORT_FORMATS)})")
    if quality is not None and not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ValueError(f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}")


def artifact_filename(record: DimensionRecord, extension: str) -> str:
    name = f"{FILENAME_PREFIX}-{record.width}x{record.depth}x{record.height}"
    if record.front_height:
        name += f"-{record.front_height}"
    return f"{name}.{extension}"


def _dedupe_filename(filename: str, taken: set[str]) -> str:
    """Number repeated names the way a browser download does: 'name (2).ext'."""
    if filename not in taken:
        return filename
    stem, dot, ext = filename.rpartition(".")
    n = 2
    while f"{stem} ({n}){dot}{ext}" in taken:
        n += 1
    return f"{stem} ({n}){dot}{ext}"


def encode_frame(image: Image.Image, fmt: str = "webp", quality: Optional[int] = None) -> bytes:
    """Encode a rendered frame with the format's fixed quality setting."""
    export_format = EXPORT_FORMATS[fmt]
    if quality is None:
        quality = export_format.quality
    buf = io.BytesIO()
    image.convert("RGB").save(buf, export_format.pil_format, quality=quality, **export_format.save_options)
    return buf.getvalue()


class PreviewCanvas:
    """
    The shared output canvas.

    All drawing happens on one dedicated render thread, so redraws are
    applied in the order they were requested. redraw() snapshots the state
    and returns a Future that resolves once the new frame exists.
    """

    def __init__(self, size: int = OUTPUT_SIZE):
        self.size = size
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hoes-render")
        self._lock = threading.Lock()
        self._latest: Optional[RenderedFrame] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def redraw(self, state: EditorState) -> "Future[RenderedFrame]":
        record = state.current_record
        positions = dict(state.positions)
        return self._executor.submit(self._render, record, positions, state.title, state.source)

    def _render(self, record, positions, title, source) -> RenderedFrame:
        frame = RenderedFrame(record=record, image=render_frame(record, positions, title, source, self.size))
        with self._lock:
            self._latest = frame
        return frame

    def attach(self, state: EditorState) -> "Future[RenderedFrame]":
        """Keep the canvas in sync with every change to state."""
        if self._unsubscribe:
            self._unsubscribe()
        self._unsubscribe = state.subscribe(self.redraw)
        return self.redraw(state)

    @property
    def latest(self) -> Optional[RenderedFrame]:
        with self._lock:
            return self._latest

    def close(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self._executor.shutdown(wait=True)


def write_artifact(output_dir: Path) -> Callable[[ExportArtifact], None]:
    """Deliver artifacts as files in output_dir."""
    output_dir.mkdir(parents=True, exist_ok=True)

    def deliver(artifact: ExportArtifact) -> None:
        path = output_dir / artifact.filename
        path.write_bytes(artifact.data)
        logging.debug("Wrote %s (%d bytes)", path, len(artifact.data))

    return deliver


def export_all(
    state: EditorState,
    canvas: PreviewCanvas,
    fmt: Optional[str] = None,
    quality: Optional[int] = None,
    deliver: Optional[Callable[[ExportArtifact], None]] = None,
    notify: Optional[Callable[[str], None]] = None,
    timeout: float = RENDER_TIMEOUT,
) -> list[ExportArtifact]:
    """
    Export one encoded image per record, in record order.

    A failing record is logged and left out; the rest of the batch continues.

    Raises:
        ExportInProgressError: another export is running on this state
        MissingSourceImageError: no product photo loaded
        ValueError: unknown format or quality out of range
    """
    if state.generating:
        raise ExportInProgressError("Export already running")
    if state.source is None:
        raise MissingSourceImageError("Upload a product photo before exporting")
    fmt = fmt or _env_format()
    if quality is None:
        quality = _env_quality()
    _check_export_settings(fmt, quality)

    if not state.records:
        (notify or logging.warning)(NO_RECORDS_MESSAGE)
        return []

    extension = EXPORT_FORMATS[fmt].extension
    records = list(state.records)
    artifacts: list[ExportArtifact] = []
    taken: set[str] = set()
    failed = 0

    logging.info("Exporting %d images as %s", len(records), fmt)
    state.generating = True
    try:
        for index, record in enumerate(records):
            filename = _dedupe_filename(artifact_filename(record, extension), taken)
            taken.add(filename)
            try:
                state.select(index)
                frame = canvas.redraw(state).result(timeout=timeout)
                if frame.record != record:
                    raise ExportError(f"canvas shows {frame.record} instead of {record}")
                artifact = ExportArtifact(record=record, filename=filename, data=encode_frame(frame.image, fmt, quality))
                if deliver:
                    deliver(artifact)
            except Exception as e:
                logging.error("Failed %s: %s", filename, e)
                failed += 1
                continue

            artifacts.append(artifact)
            logging.info("Exported: %s", filename)
    finally:
        state.generating = False

    logging.info("Completed: %d success, %d failed", len(artifacts), failed)
    return artifacts


def _setup_logging(output_dir: Path) -> None:
    """Configure logging to console and file."""
    output_dir.mkdir(parents=True, exist_ok=True)
    log_path = output_dir / "run.log"

    logger = logging.getLogger()
    logger.setLevel(logging.INFO)

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(logging.INFO)
    sh.setFormatter(formatter)

    fh = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(formatter)

    logger.handlers.clear()
    logger.addHandler(sh)
    logger.addHandler(fh)


def _read_dimensions_file(path: Path) -> str:
    """
    Read a size list from a text, CSV or Excel file.

    Text files are used as-is. For CSV and Excel only the first column is
    read, one size per row.
    """
    if not path.exists():
        raise FileNotFoundError(f"Dimensions file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in (".xlsx", ".xlsm"):
        wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
        ws = wb.worksheets[0]
        lines = []
        for row in ws.iter_rows(min_col=1, max_col=1, values_only=True):
            value = row[0]
            if value is not None and str(value).strip():
                lines.append(str(value).strip())
        wb.close()
        return "\n".join(lines)

    if suffix == ".csv":
        with path.open("r", encoding="utf-8-sig", newline="") as f:
            return "\n".join(row[0] for row in csv.reader(f) if row and row[0].strip())

    return path.read_text(encoding="utf-8-sig")


def _parse_position(value: str) -> tuple[LabelKind, AnchorPosition]:
    """Parse 'width=50,85' into a label kind and a clamped anchor."""
    try:
        name, coords = value.split("=", 1)
        x, y = (float(c) for c in coords.split(","))
        kind = LabelKind.from_name(name)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid position '{value}' (expected KIND=X,Y): {e}")
    return kind, AnchorPosition.clamped(x, y)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Export one product image per size line")
    parser.add_argument("--image", type=Path, required=True, help="Product photo")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--dimensions", type=Path, help="Size list file (.txt, .csv, .xlsx)")
    group.add_argument("--dimensions-text", type=str, help="Size list, one size per line")
    parser.add_argument("--title", type=str, default=DEFAULT_TITLE, help="Product title")
    parser.add_argument("--output", type=Path, default=Path("exports"), help="Output directory")
    parser.add_argument("--format", type=str, default=None, choices=sorted(EXPORT_FORMATS),
                        help="Image format (default webp, or set HOES_EXPORT_FORMAT)")
    parser.add_argument("--quality", type=int, default=None,
                        help="Encoder quality 1-100 (default 92, or set HOES_EXPORT_QUALITY)")
    parser.add_argument("--position", type=_parse_position, action="append", default=[],
                        help="Label anchor in percent, e.g. width=50,85 (repeatable)")
    parser.add_argument("--preview", type=int, default=None, metavar="INDEX",
                        help="Write preview.png for one record instead of exporting")
    parser.add_argument("--dry-run", action="store_true", help="List file names without exporting")

    args = parser.parse_args(argv)

    _setup_logging(args.output)

    try:
        fmt = args.format or _env_format()
        quality = args.quality if args.quality is not None else _env_quality()
        _check_export_settings(fmt, quality)
    except ValueError as e:
        logging.error("Invalid export settings: %s", e)
        return 1

    logging.info("=" * 60)
    logging.info("Hoes Image Exporter - Starting")
    logging.info("Image: %s", args.image)
    logging.info("Dimensions: %s", args.dimensions or "(inline)")
    logging.info("Output: %s", args.output)
    logging.info("Format: %s (quality %s)", fmt, quality or EXPORT_FORMATS[fmt].quality)
    logging.info("Dry run: %s", args.dry_run)
    logging.info("=" * 60)

    if not args.image.exists():
        logging.error("Image not found: %s", args.image)
        return 1

    try:
        if args.dimensions is None:
            text = args.dimensions_text.replace("\\n", "\n")
        else:
            text = _read_dimensions_file(args.dimensions)
    except Exception as e:
        logging.error("Failed to read dimensions: %s", e)
        return 1

    state = EditorState(title=args.title, dimensions_text=text)
    for kind, position in args.position:
        state.move_anchor(kind, position.x, position.y)
    logging.info("Loaded %d sizes", state.record_count)

    try:
        state.load_image(args.image)
    except OSError as e:
        logging.error("Failed to load image %s: %s", args.image, e)
        return 1

    if args.dry_run:
        extension = EXPORT_FORMATS[fmt].extension
        for record in state.records:
            logging.info("[DRY RUN] Would export: %s", args.output / artifact_filename(record, extension))
        return 0

    with PreviewCanvas() as canvas:
        if args.preview is not None:
            try:
                state.select(args.preview)
            except IndexError as e:
                logging.error("%s", e)
                return 1
            frame = canvas.redraw(state).result(timeout=RENDER_TIMEOUT)
            preview_path = args.output / "preview.png"
            frame.image.save(preview_path, "PNG")
            logging.info("Preview written: %s", preview_path)
            return 0

        artifacts = export_all(
            state,
            canvas,
            fmt=fmt,
            quality=quality,
            deliver=write_artifact(args.output),
            notify=logging.error,
        )

    if len(artifacts) < state.record_count or not artifacts:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

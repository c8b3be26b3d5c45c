"""Image export for mindspread mind maps."""

import logging
import math
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import cairo

from mindspread.config import get_data_dir
from mindspread.model import Node

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]


def parse_color(value: Optional[str], fallback: RGB) -> RGB:
    """Convert ``#rgb`` / ``#rrggbb`` to cairo floats."""
    if not value or not value.startswith("#"):
        return fallback
    digits = value[1:]
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    if len(digits) != 6:
        return fallback
    try:
        return tuple(int(digits[i:i + 2], 16) / 255.0 for i in (0, 2, 4))  # type: ignore[return-value]
    except ValueError:
        return fallback


class MindMapExporter:
    """Draws the visible part of a map to PNG or PDF."""

    COLORS = {
        'background': (0.984, 0.984, 0.992),
        'node_fill': (1.0, 1.0, 1.0),
        'node_border': (0.831, 0.831, 0.847),
        'text': (0.0, 0.0, 0.0),
        'connection': (0.333, 0.333, 0.333),
    }

    PADDING = 50
    CORNER_RADIUS = 8
    FONT_SIZE = 14

    PAGE_SIZES = {
        "A4": (595, 842),
        "Letter": (612, 792),
    }

    def __init__(self, engine):
        self.engine = engine

    def _bounds(self, nodes: List[Node]) -> Tuple[float, float, float, float]:
        return (
            min(n.x for n in nodes),
            min(n.y for n in nodes),
            max(n.x + n.w for n in nodes),
            max(n.y + n.h for n in nodes),
        )

    def _paint(self, cr, nodes: List[Node], transparent: bool):
        if not transparent:
            cr.set_source_rgb(*self.COLORS['background'])
            cr.paint()
        self._draw_connections(cr)
        for node in nodes:
            self._draw_node(cr, node)

    def export_png(self, filepath: str, scale: float = 2.0, transparent: bool = False) -> bool:
        """Export the visible map to a PNG image."""
        nodes = self.engine.visible_nodes()
        if not nodes:
            return False

        min_x, min_y, max_x, max_y = self._bounds(nodes)
        width = int((max_x - min_x + self.PADDING * 2) * scale)
        height = int((max_y - min_y + self.PADDING * 2) * scale)

        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, width, height)
        cr = cairo.Context(surface)
        cr.scale(scale, scale)
        cr.translate(-min_x + self.PADDING, -min_y + self.PADDING)

        self._paint(cr, nodes, transparent)

        surface.write_to_png(filepath)
        logger.info(f"Exported PNG to {filepath}")
        return True

    def export_pdf(self, filepath: str, page_size: str = "A4", title: str = "Mind Map") -> bool:
        """Export the visible map to a single-page PDF.

        ``page_size`` is ``A4``, ``Letter`` or ``Auto`` (page fits the map).
        """
        nodes = self.engine.visible_nodes()
        if not nodes:
            return False

        min_x, min_y, max_x, max_y = self._bounds(nodes)
        map_width = max_x - min_x + self.PADDING * 2
        map_height = max_y - min_y + self.PADDING * 2

        if page_size == "Auto":
            width, height, scale = map_width, map_height, 1.0
        else:
            width, height = self.PAGE_SIZES.get(page_size, self.PAGE_SIZES["A4"])
            scale = min((width - 40) / map_width, (height - 40) / map_height, 1.0)

        surface = cairo.PDFSurface(filepath, width, height)
        surface.set_metadata(cairo.PDF_METADATA_TITLE, title)
        surface.set_metadata(cairo.PDF_METADATA_CREATE_DATE,
                             datetime.now().strftime("%Y-%m-%dT%H:%M:%S"))
        cr = cairo.Context(surface)

        # Centre on the page
        cr.translate((width - map_width * scale) / 2, (height - map_height * scale) / 2)
        cr.scale(scale, scale)
        cr.translate(-min_x + self.PADDING, -min_y + self.PADDING)

        self._paint(cr, nodes, True)

        surface.finish()
        logger.info(f"Exported PDF to {filepath}")
        return True

    def _draw_connections(self, cr):
        cr.set_source_rgb(*self.COLORS['connection'])
        cr.set_line_width(2)
        cr.set_line_cap(cairo.LINE_CAP_ROUND)
        for parent, child in self.engine.connections():
            start_x, start_y = parent.center
            end_x, end_y = child.center
            mid_x = (start_x + end_x) / 2
            cr.move_to(start_x, start_y)
            cr.curve_to(mid_x, start_y, mid_x, end_y, end_x, end_y)
            cr.stroke()

    def _draw_node(self, cr, node: Node):
        style = node.style
        fill = parse_color(style.background_color if style else None, self.COLORS['node_fill'])
        ink = parse_color(style.color if style else None, self.COLORS['text'])
        shape = (style.shape if style else None) or "rounded"

        x, y, w, h = node.x, node.y, node.w, node.h
        if shape == "diamond":
            cr.move_to(x + w / 2, y)
            cr.line_to(x + w, y + h / 2)
            cr.line_to(x + w / 2, y + h)
            cr.line_to(x, y + h / 2)
            cr.close_path()
        elif shape == "rect":
            cr.rectangle(x, y, w, h)
        else:
            radius = h / 2 if shape == "pill" else self.CORNER_RADIUS
            self._draw_rounded_rect(cr, x, y, w, h, radius)

        cr.set_source_rgb(*fill)
        cr.fill_preserve()
        cr.set_source_rgb(*self.COLORS['node_border'])
        cr.set_line_width(1.5)
        cr.stroke()

        # Text
        bold = style is not None and style.font_weight == "bold"
        italic = style is not None and style.font_style == "italic"
        cr.select_font_face("Sans",
                            cairo.FONT_SLANT_ITALIC if italic else cairo.FONT_SLANT_NORMAL,
                            cairo.FONT_WEIGHT_BOLD if bold else cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(self.FONT_SIZE)
        cr.set_source_rgb(*ink)

        text = node.text
        extents = cr.text_extents(text)
        while text and extents.width > w - 12:
            text = text[:-1]
            extents = cr.text_extents(text + "…")
        if text != node.text:
            text += "…"
        cr.move_to(x + (w - extents.width) / 2 - extents.x_bearing,
                   y + (h - extents.height) / 2 - extents.y_bearing)
        cr.show_text(text)

    def _draw_rounded_rect(self, cr, x, y, w, h, radius):
        """Draw a rounded rectangle path."""
        radius = min(radius, w / 2, h / 2)
        cr.new_sub_path()
        cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
        cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
        cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
        cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
        cr.close_path()


def get_export_dir() -> Path:
    """Get the default export directory."""
    export_dir = get_data_dir() / "exports"
    export_dir.mkdir(parents=True, exist_ok=True)
    return export_dir

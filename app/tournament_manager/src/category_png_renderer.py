from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, List, Mapping, Sequence

from PIL import Image, ImageDraw, ImageFont

from ..schemas.schemas import AllocatedCategory

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont

BACKGROUND_RGB = (24, 26, 38)
HEADER_RGBA = (109, 62, 181, 200)
STRIPE_RGBA = (255, 255, 255, 18)
GRID_RGB = (0, 0, 0)

# Place 1..3 tints (gold, silver, bronze)
PODIUM_RGBA: dict[int, tuple[int, int, int, int]] = {
    1: (255, 215, 0, 110),
    2: (192, 192, 192, 110),
    3: (205, 127, 50, 110),
}

EMPTY_PLACEHOLDER = "No players"


@dataclass(frozen=True)
class RenderLayoutOptions:
    font_size: int = 22
    padding_x: int = 12
    padding_y: int = 8
    grid: int = 1
    margin: int = 24


@dataclass(frozen=True)
class _TableGeometry:
    col_widths: Sequence[int]
    row_height: int
    title_height: int
    start_x: int
    start_y: int
    grid: int

    @property
    def table_width(self) -> int:
        return int(sum(self.col_widths) + self.grid * (len(self.col_widths) + 1))

    def row_top(self, r: int) -> int:
        return self.start_y + r * (self.row_height + self.grid)


def _format_cell(value: Any) -> str:
    """Format a table cell for display."""
    if value is None:
        return ""
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else f"{value:,.2f}"
    return str(value)


def _load_fonts(font_size: int) -> tuple[Font, Font]:
    """Load a font and bold font (TTF preferred, else Pillow default)."""
    candidates: list[tuple[str, str]] = [
        ("DejaVuSans.ttf", "DejaVuSans-Bold.ttf"),
        ("NotoSans-Regular.ttf", "NotoSans-Bold.ttf"),
        ("arial.ttf", "arialbd.ttf"),
    ]
    font_dirs = [
        Path("/usr/share/fonts"),
        Path("/usr/share/fonts/truetype/dejavu"),
        Path("/usr/local/share/fonts"),
        Path("C:/Windows/Fonts"),
    ]

    def _try_load(name: str) -> Font:
        try:
            return ImageFont.truetype(name, font_size)
        except OSError:
            for d in font_dirs:
                p = d / name
                if p.exists():
                    return ImageFont.truetype(str(p), font_size)
            raise

    for regular_name, bold_name in candidates:
        try:
            font = _try_load(regular_name)
        except OSError:
            continue
        try:
            font_bold = _try_load(bold_name)
        except OSError:
            font_bold = font
        return font, font_bold

    font = ImageFont.load_default()
    return font, font


def build_table_text(columns: Sequence[str], players: Sequence[Mapping[str, Any]]) -> List[List[str]]:
    """Header row ("#" + columns) followed by one row per player, numbered from 1."""
    table: List[List[str]] = [["#", *columns]]
    for place, player in enumerate(players, start=1):
        table.append([str(place), *(_format_cell(player.get(c, "")) for c in columns)])
    if not players:
        # Same width as the header; with no columns the placeholder sits under "#".
        placeholder = [""] * len(table[0])
        placeholder[1 if columns else 0] = EMPTY_PLACEHOLDER
        table.append(placeholder)
    return table


def _text_size(draw: ImageDraw.ImageDraw, font: Font, s: str) -> tuple[int, int]:
    bbox = draw.textbbox((0, 0), s or "Ag", font=font)
    return int(bbox[2] - bbox[0]), int(bbox[3] - bbox[1])


def _measure(
    table_text: Sequence[Sequence[str]],
    *,
    title: str,
    font: Font,
    font_bold: Font,
    layout: RenderLayoutOptions,
) -> tuple[_TableGeometry, int, int]:
    """Compute geometry and the final image size."""
    draw = ImageDraw.Draw(Image.new("RGB", (1, 1)))
    col_count = len(table_text[0])

    col_widths: list[int] = []
    for c in range(col_count):
        widest = max(_text_size(draw, font_bold if r == 0 else font, table_text[r][c])[0] for r in range(len(table_text)))
        col_widths.append(widest + layout.padding_x * 2)

    text_h = max(_text_size(draw, font_bold, "Ag")[1], _text_size(draw, font, "Ag")[1])
    row_height = text_h + layout.padding_y * 2
    title_w, title_h = _text_size(draw, font_bold, title)
    title_height = title_h + layout.padding_y * 3

    geometry = _TableGeometry(
        col_widths=col_widths,
        row_height=row_height,
        title_height=title_height,
        start_x=layout.margin,
        start_y=layout.margin + title_height,
        grid=layout.grid,
    )
    img_w = max(geometry.table_width, title_w) + layout.margin * 2
    img_h = geometry.row_top(len(table_text)) + layout.grid + layout.margin
    return geometry, img_w, img_h


def _draw_row_bands(img: Image.Image, *, geometry: _TableGeometry, row_count: int, has_players: bool) -> Image.Image:
    """Shade the header, podium places and alternating rows; return the composited image."""
    overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
    od = ImageDraw.Draw(overlay)

    def band(r: int) -> tuple[int, int, int, int]:
        y0 = geometry.row_top(r) + geometry.grid
        return (geometry.start_x + geometry.grid, y0, geometry.start_x + geometry.table_width - geometry.grid, y0 + geometry.row_height - 1)

    od.rectangle(band(0), fill=HEADER_RGBA)
    for r in range(1, row_count):
        fill = PODIUM_RGBA.get(r) if has_players else None
        if fill is None and r % 2 == 0:
            fill = STRIPE_RGBA
        if fill is not None:
            od.rectangle(band(r), fill=fill)

    return Image.alpha_composite(img.convert("RGBA"), overlay).convert("RGB")


def _draw_grid(draw: ImageDraw.ImageDraw, *, geometry: _TableGeometry, row_count: int) -> None:
    bottom = geometry.row_top(row_count)
    x = geometry.start_x
    for w in geometry.col_widths:
        draw.line([(x, geometry.start_y), (x, bottom)], fill=GRID_RGB, width=geometry.grid)
        x += w + geometry.grid
    draw.line([(x, geometry.start_y), (x, bottom)], fill=GRID_RGB, width=geometry.grid)

    for r in range(row_count + 1):
        y = geometry.row_top(r)
        draw.line([(geometry.start_x, y), (geometry.start_x + geometry.table_width, y)], fill=GRID_RGB, width=geometry.grid)


def _draw_cells(
    draw: ImageDraw.ImageDraw,
    *,
    table_text: Sequence[Sequence[str]],
    geometry: _TableGeometry,
    font: Font,
    font_bold: Font,
) -> None:
    for r, row in enumerate(table_text):
        x = geometry.start_x
        cell_y = geometry.row_top(r) + geometry.grid + geometry.row_height // 2
        for c, text in enumerate(row):
            w = geometry.col_widths[c]
            draw.text(
                (x + geometry.grid + w // 2, cell_y),
                text,
                fill="white",
                font=font_bold if r == 0 or c == 0 else font,
                anchor="mm",
                stroke_width=1,
                stroke_fill="black",
            )
            x += w + geometry.grid


def render_category_to_png(
    category: AllocatedCategory,
    columns: Sequence[str],
    *,
    layout: RenderLayoutOptions | None = None,
) -> bytes:
    """Return PNG bytes rendering a category's standings table."""
    layout = layout or RenderLayoutOptions()
    font, font_bold = _load_fonts(layout.font_size)

    title = f"{category.name} ({category.type.value})"
    table_text = build_table_text(columns, category.players)
    geometry, img_w, img_h = _measure(table_text, title=title, font=font, font_bold=font_bold, layout=layout)

    img = Image.new("RGB", (img_w, img_h), BACKGROUND_RGB)
    img = _draw_row_bands(img, geometry=geometry, row_count=len(table_text), has_players=bool(category.players))

    draw = ImageDraw.Draw(img)
    draw.text((layout.margin, layout.margin), title, fill="white", font=font_bold)
    _draw_grid(draw, geometry=geometry, row_count=len(table_text))
    _draw_cells(draw, table_text=table_text, geometry=geometry, font=font, font_bold=font_bold)

    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()

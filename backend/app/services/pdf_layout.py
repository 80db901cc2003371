"""Declarative page layout on top of reportlab's canvas.

A document is a list of `Page` objects. Each page has a header (a cover band or
a coloured title band) and a list of blocks. `paginate` stacks the blocks
top-down in millimetres and spills onto continuation sheets when a page runs
out of room; tables and bullet lists split between rows. `render_pdf` draws the
resulting sheets and stamps the footer on every one of them.

Coordinates are millimetres measured from the top-left corner of an A4 sheet.
Text is positioned by its baseline.
"""

from dataclasses import dataclass, field, replace
from io import BytesIO
from typing import Protocol

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

RGB = tuple[int, int, int]

BLACK: RGB = (0, 0, 0)
WHITE: RGB = (255, 255, 255)
GREY: RGB = (128, 128, 128)
DARK_GREY: RGB = (100, 100, 100)
RULE_GREY: RGB = (200, 200, 200)

PAGE_WIDTH = A4[0] / mm
PAGE_HEIGHT = A4[1] / mm
MARGIN_X = 20.0
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN_X
CONTENT_BOTTOM = PAGE_HEIGHT - 25.0
# Two footer lines: the document line, then the page number.
FOOTER_BASELINE = PAGE_HEIGHT - 17.0
FOOTER_LEADING = 5.0

# Baseline offset for a font size in points, roughly its cap height in mm.
PT_TO_MM = 0.3528


def _font(bold: bool) -> str:
    return "Helvetica-Bold" if bold else "Helvetica"


def _rgb(color: RGB) -> tuple[float, float, float]:
    return color[0] / 255, color[1] / 255, color[2] / 255


class Pen:
    """Thin wrapper translating top-left millimetre coordinates to reportlab points."""

    def __init__(self, target: canvas.Canvas):
        self.canvas = target

    def _y(self, y: float) -> float:
        return (PAGE_HEIGHT - y) * mm

    def rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        fill: RGB | None = None,
        stroke: RGB | None = None,
        radius: float = 0.0,
    ) -> None:
        c = self.canvas
        if fill is not None:
            c.setFillColorRGB(*_rgb(fill))
        if stroke is not None:
            c.setStrokeColorRGB(*_rgb(stroke))
        args = (x * mm, self._y(y + height), width * mm, height * mm)
        flags = {"stroke": int(stroke is not None), "fill": int(fill is not None)}
        if radius:
            c.roundRect(*args, radius * mm, **flags)
        else:
            c.rect(*args, **flags)

    def text(
        self,
        x: float,
        y: float,
        value: str,
        size: float = 10,
        color: RGB = BLACK,
        bold: bool = False,
        align: str = "left",
    ) -> None:
        c = self.canvas
        c.setFont(_font(bold), size)
        c.setFillColorRGB(*_rgb(color))
        if align == "center":
            c.drawCentredString(x * mm, self._y(y), value)
        elif align == "right":
            c.drawRightString(x * mm, self._y(y), value)
        else:
            c.drawString(x * mm, self._y(y), value)

    def line(self, x1: float, y1: float, x2: float, y2: float, color: RGB = RULE_GREY) -> None:
        self.canvas.setStrokeColorRGB(*_rgb(color))
        self.canvas.line(x1 * mm, self._y(y1), x2 * mm, self._y(y2))


def fit_text(value: str, width: float, size: float, bold: bool = False) -> str:
    """Trim `value` with an ellipsis so it fits in `width` millimetres."""
    limit = width * mm
    if stringWidth(value, _font(bold), size) <= limit:
        return value
    while value and stringWidth(value + "...", _font(bold), size) > limit:
        value = value[:-1]
    return value + "..."


# Headers


class Header(Protocol):
    color: RGB

    @property
    def height(self) -> float: ...

    def draw(self, pen: Pen) -> None: ...

    def continued(self) -> "Header": ...


@dataclass
class HeaderBand:
    title: str
    color: RGB
    height: float = 25.0

    def draw(self, pen: Pen) -> None:
        pen.rect(0, 0, PAGE_WIDTH, self.height, fill=self.color)
        pen.text(MARGIN_X, 17, self.title, size=16, color=WHITE, bold=True)

    def continued(self) -> "HeaderBand":
        return HeaderBand(title=f"{self.title} (continued)", color=self.color)


@dataclass
class CoverBand:
    title: str
    subtitle: str
    badge: str
    color: RGB
    height: float = 80.0

    def draw(self, pen: Pen) -> None:
        pen.rect(0, 0, PAGE_WIDTH, self.height, fill=self.color)
        pen.rect(20, 15, 50, 50, fill=WHITE, radius=5)
        pen.text(45, 45, fit_text(self.badge, 44, 24, bold=True), size=24, color=self.color, bold=True, align="center")
        pen.text(85, 40, self.title, size=32, color=WHITE, bold=True)
        pen.text(85, 55, self.subtitle, size=14, color=WHITE)

    def continued(self) -> HeaderBand:
        return HeaderBand(title=f"{self.title} (continued)", color=self.color)


# Blocks


class Block(Protocol):
    space_after: float

    @property
    def height(self) -> float: ...

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None: ...


@dataclass
class TextLine:
    text: str
    size: float = 11
    bold: bool = False
    color: RGB = BLACK
    space_after: float = 4.0

    @property
    def height(self) -> float:
        return self.size * 0.5

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None:
        baseline = y + self.size * PT_TO_MM
        pen.text(x, baseline, fit_text(self.text, width, self.size, self.bold), self.size, self.color, self.bold)


@dataclass
class InfoBox:
    """Shaded box with a bold title and rows of text; a row may hold several columns."""

    title: str
    rows: list[list[str]]
    fill: RGB = (248, 250, 252)
    space_after: float = 20.0

    @property
    def height(self) -> float:
        return 20.0 + 15.0 * len(self.rows)

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None:
        pen.rect(x, y, width, self.height, fill=self.fill, radius=5)
        pen.text(x + 10, y + 15, self.title, size=11, bold=True)
        for index, row in enumerate(self.rows):
            column_width = (width - 20) / max(len(row), 1)
            for column, value in enumerate(row):
                pen.text(x + 10 + column * column_width, y + 30 + index * 15, fit_text(value, column_width - 2, 10), size=10)


@dataclass
class StatTile:
    label: str
    value: str
    color: RGB


@dataclass
class StatTiles:
    tiles: list[StatTile]
    gap: float = 5.0
    space_after: float = 10.0

    @property
    def height(self) -> float:
        return 45.0

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None:
        count = max(len(self.tiles), 1)
        tile_width = (width - self.gap * (count - 1)) / count
        for index, tile in enumerate(self.tiles):
            left = x + index * (tile_width + self.gap)
            pen.rect(left, y, tile_width, self.height, fill=tile.color, radius=3)
            pen.text(left + 6, y + 25, fit_text(tile.value, tile_width - 8, 20, True), size=20, color=WHITE, bold=True)
            pen.text(left + 6, y + 38, fit_text(tile.label, tile_width - 8, 8), size=8, color=WHITE)


@dataclass
class Cell:
    text: str
    color: RGB | None = None
    bold: bool = False


@dataclass
class Table:
    head: list[str]
    rows: list[list[Cell | str]]
    widths: list[float]
    header_color: RGB
    stripe_color: RGB = (248, 250, 252)
    align: list[str] = field(default_factory=list)
    font_size: float = 10
    row_height: float = 8.0
    header_height: float = 9.0
    space_after: float = 15.0

    @property
    def height(self) -> float:
        return self.header_height + self.row_height * len(self.rows)

    def split(self, available: float) -> tuple["Table", "Table"] | None:
        fits = int((available - self.header_height) // self.row_height)
        if fits < 1 or fits >= len(self.rows):
            return None
        return replace(self, rows=self.rows[:fits], space_after=0.0), replace(self, rows=self.rows[fits:])

    def _align(self, column: int) -> str:
        return self.align[column] if column < len(self.align) else "left"

    def _cell(self, pen: Pen, left: float, baseline: float, width: float, column: int, cell: Cell, default: RGB) -> None:
        alignment = self._align(column)
        value = fit_text(cell.text, width - 4, self.font_size, cell.bold)
        if alignment == "center":
            anchor = left + width / 2
        elif alignment == "right":
            anchor = left + width - 2
        else:
            anchor = left + 2
        pen.text(anchor, baseline, value, self.font_size, cell.color or default, cell.bold, alignment)

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None:
        offset = (self.header_height + self.font_size * PT_TO_MM * 0.7) / 2
        pen.rect(x, y, sum(self.widths), self.header_height, fill=self.header_color)
        left = x
        for column, title in enumerate(self.head):
            self._cell(pen, left, y + offset, self.widths[column], column, Cell(title, bold=True), WHITE)
            left += self.widths[column]

        top = y + self.header_height
        offset = (self.row_height + self.font_size * PT_TO_MM * 0.7) / 2
        for index, row in enumerate(self.rows):
            if index % 2 == 1:
                pen.rect(x, top, sum(self.widths), self.row_height, fill=self.stripe_color)
            left = x
            for column, value in enumerate(row):
                cell = value if isinstance(value, Cell) else Cell(str(value))
                self._cell(pen, left, top + offset, self.widths[column], column, cell, BLACK)
                left += self.widths[column]
            top += self.row_height


@dataclass
class SummaryBox:
    """Framed callout: a title line followed by one line of evenly spaced columns."""

    title: str
    columns: list[str]
    fill: RGB
    title_color: RGB = BLACK
    border: RGB | None = None
    box_height: float = 40.0
    space_after: float = 10.0

    @property
    def height(self) -> float:
        return self.box_height

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None:
        pen.rect(x, y, width, self.box_height, fill=self.fill, stroke=self.border, radius=3)
        pen.text(x + 10, y + 15, self.title, size=11, color=self.title_color, bold=True)
        column_width = (width - 20) / max(len(self.columns), 1)
        for index, value in enumerate(self.columns):
            pen.text(x + 10 + index * column_width, y + 30, fit_text(value, column_width - 2, 10), size=10)


@dataclass
class Bar:
    label: str
    value: float
    color: RGB


@dataclass
class HorizontalBars:
    """Labelled horizontal bars scaled against the largest value.

    Bar width is `value / max * span + base`, never narrower than `min_width`,
    so empty categories still have room for their label.
    """

    title: str
    bars: list[Bar]
    span: float = 140.0
    base: float = 30.0
    min_width: float = 50.0
    bar_height: float = 14.0
    pitch: float = 18.0
    space_after: float = 10.0

    @property
    def height(self) -> float:
        return 15.0 + self.pitch * len(self.bars)

    def bar_width(self, value: float) -> float:
        largest = max((bar.value for bar in self.bars), default=0) or 1
        return max(value / largest * self.span + self.base, self.min_width)

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None:
        pen.text(x, y + 5, self.title, size=12, bold=True)
        for index, bar in enumerate(self.bars):
            top = y + 12 + index * self.pitch
            bar_width = min(self.bar_width(bar.value), width)
            pen.rect(x, top, bar_width, self.bar_height, fill=bar.color, radius=2)
            pen.text(x + 5, top + 9, fit_text(bar.label, bar_width - 6, 9, True), size=9, color=WHITE, bold=True)


@dataclass
class Series:
    name: str
    color: RGB


@dataclass
class BarGroup:
    label: str
    values: list[float]


@dataclass
class GroupedBars:
    """Vertical bar clusters, one bar per series, with a legend underneath."""

    title: str
    series: list[Series]
    groups: list[BarGroup]
    plot_height: float = 50.0
    bar_width: float = 10.0
    group_pitch: float = 25.0
    space_after: float = 10.0

    @property
    def height(self) -> float:
        return 10.0 + self.plot_height + 10.0 + 14.0

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None:
        pen.text(x, y + 5, self.title, size=12, bold=True)
        largest = max((value for group in self.groups for value in group.values), default=0) or 1
        baseline = y + 10 + self.plot_height
        for index, group in enumerate(self.groups):
            left = x + 10 + index * self.group_pitch
            for position, value in enumerate(group.values[: len(self.series)]):
                bar_height = value / largest * self.plot_height
                if bar_height > 0:
                    pen.rect(
                        left + position * (self.bar_width + 1),
                        baseline - bar_height,
                        self.bar_width,
                        bar_height,
                        fill=self.series[position].color,
                    )
            pen.text(left + 3, baseline + 6, group.label, size=8, color=DARK_GREY)

        legend_top = baseline + 12
        left = x + 10
        for item in self.series:
            pen.rect(left, legend_top, 10, 8, fill=item.color)
            pen.text(left + 15, legend_top + 6, item.name, size=8)
            left += 70


@dataclass
class BulletList:
    heading: str | None
    items: list[str]
    size: float = 10
    pitch: float = 7.0
    space_after: float = 8.0

    @property
    def height(self) -> float:
        return (12.0 if self.heading else 0.0) + self.pitch * len(self.items)

    def split(self, available: float) -> tuple["BulletList", "BulletList"] | None:
        used = 12.0 if self.heading else 0.0
        fits = int((available - used) // self.pitch)
        if fits < 1 or fits >= len(self.items):
            return None
        return (
            replace(self, items=self.items[:fits], space_after=0.0),
            replace(self, heading=None, items=self.items[fits:]),
        )

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None:
        top = y
        if self.heading:
            pen.text(x, top + 6, self.heading, size=14, bold=True)
            top += 12.0
        for item in self.items:
            pen.text(x + 5, top + 5, fit_text(f"• {item}", width - 5, self.size), size=self.size)
            top += self.pitch


@dataclass
class ClosingNote:
    """Rule followed by small print; pinned to the bottom of the content area."""

    lines: list[str]
    pin_bottom: bool = True
    space_after: float = 0.0

    @property
    def height(self) -> float:
        return 10.0 + 10.0 * len(self.lines)

    def draw(self, pen: Pen, x: float, y: float, width: float) -> None:
        pen.line(x, y, x + width, y)
        for index, value in enumerate(self.lines):
            pen.text(x, y + 10 + index * 10, value, size=9, color=DARK_GREY)


@dataclass
class Page:
    header: Header
    blocks: list = field(default_factory=list)


@dataclass
class Sheet:
    """One physical page: a header and blocks with their resolved top offsets."""

    header: Header
    placements: list[tuple[object, float]] = field(default_factory=list)


def _content_top(header: Header) -> float:
    return header.height + 10.0


def paginate(pages: list[Page]) -> list[Sheet]:
    sheets: list[Sheet] = []
    for page in pages:
        sheet = Sheet(header=page.header)
        sheets.append(sheet)
        cursor = _content_top(sheet.header)
        queue = list(page.blocks)

        while queue:
            block = queue.pop(0)
            height = block.height

            if getattr(block, "pin_bottom", False):
                top = CONTENT_BOTTOM - height
                if cursor > top and sheet.placements:
                    sheet = Sheet(header=sheet.header.continued())
                    sheets.append(sheet)
                sheet.placements.append((block, top))
                cursor = CONTENT_BOTTOM
                continue

            if cursor + height <= CONTENT_BOTTOM:
                sheet.placements.append((block, cursor))
                cursor += height + block.space_after
                continue

            split = getattr(block, "split", None)
            parts = split(CONTENT_BOTTOM - cursor) if split else None
            if parts:
                head, rest = parts
                sheet.placements.append((head, cursor))
                queue.insert(0, rest)
            elif not sheet.placements:
                # Too tall for an empty sheet and cannot be split: draw it and move on.
                sheet.placements.append((block, cursor))
            else:
                queue.insert(0, block)
            if not queue:
                break
            sheet = Sheet(header=sheet.header.continued())
            sheets.append(sheet)
            cursor = _content_top(sheet.header)
    return sheets


def draw_footer(pen: Pen, footer: str, number: int) -> None:
    pen.line(MARGIN_X, FOOTER_BASELINE - 5, PAGE_WIDTH - MARGIN_X, FOOTER_BASELINE - 5)
    pen.text(MARGIN_X, FOOTER_BASELINE, footer, size=8, color=GREY)
    pen.text(MARGIN_X, FOOTER_BASELINE + FOOTER_LEADING, f"Page {number}", size=8, color=GREY)


def render_pdf(pages: list[Page], footer: str, title: str = "", author: str = "") -> bytes:
    sheets = paginate(pages)
    buffer = BytesIO()
    target = canvas.Canvas(buffer, pagesize=A4)
    target.setTitle(title)
    target.setAuthor(author)
    pen = Pen(target)

    for number, sheet in enumerate(sheets, start=1):
        sheet.header.draw(pen)
        for block, top in sheet.placements:
            block.draw(pen, MARGIN_X, top, CONTENT_WIDTH)
        draw_footer(pen, footer, number)
        target.showPage()

    target.save()
    buffer.seek(0)
    return buffer.read()

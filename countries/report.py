"""
Summary report: total countries, top 5 by estimated GDP and the refresh time.

The report is described as a small vector layout (rectangles and text),
rasterised to PNG with Pillow and kept in a single-slot file cache.
"""
import io
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field

from PIL import Image, ImageDraw, ImageFont

from .exceptions import NotFound
from .models import Country
from .utils import config, get_now

logger = logging.getLogger(__name__)

WIDTH = 800
LIST_TOP = 210
LINE_SPACING = 40
BASE_HEIGHT = 400
TOP_N = 5

BACKGROUND = "#1a1a2e"
ACCENT = "#00d4ff"
TEXT = "#ffffff"
MUTED = "#888888"

FONT_FILES = {
    False: ("DejaVuSans.ttf", "arial.ttf"),
    True: ("DejaVuSans-Bold.ttf", "arialbd.ttf"),
}


@dataclass
class Rect:
    x: int
    y: int
    width: int
    height: int
    fill: str


@dataclass
class Text:
    # (x, y) is the baseline point; anchor "end" right-aligns on x
    x: int
    y: int
    content: str
    size: int
    fill: str
    bold: bool = False
    anchor: str = "start"


@dataclass
class ReportLayout:
    width: int
    height: int
    elements: list = field(default_factory=list)


def format_gdp(gdp):
    return f"${gdp / 1e9:.2f}B"


def build_layout(total_countries, top_countries, timestamp):
    """
    Describe the summary image. `top_countries` is an ordered list of
    (name, estimated_gdp) pairs; the canvas grows 40px per listed entry.
    """
    height = BASE_HEIGHT + LINE_SPACING * len(top_countries)
    elements = [
        Rect(0, 0, WIDTH, height, BACKGROUND),
        Text(40, 70, "Countries Summary Report", 34, ACCENT, bold=True),
        Text(40, 130, f"Total Countries: {total_countries}", 24, TEXT, bold=True),
        Text(40, 180, f"Top {TOP_N} Countries by GDP:", 22, ACCENT, bold=True),
    ]
    if not top_countries:
        elements.append(Text(60, LIST_TOP, "No GDP data available.", 18, MUTED))
    for index, (name, gdp) in enumerate(top_countries):
        y = LIST_TOP + index * LINE_SPACING
        elements.append(Text(60, y, f"{index + 1}. {name}: {format_gdp(gdp)}", 18, TEXT))
    elements.append(
        Text(WIDTH - 40, height - 30, f"Last refreshed: {timestamp}", 14, MUTED, anchor="end")
    )
    return ReportLayout(WIDTH, height, elements)


def load_font(size, bold=False):
    for name in FONT_FILES[bold]:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def rasterize(layout):
    """Turn a ReportLayout into PNG bytes. Raises ValueError on a malformed layout."""
    if not isinstance(layout, ReportLayout):
        raise ValueError(f"expected ReportLayout, got {type(layout).__name__}")
    if not (isinstance(layout.width, int) and isinstance(layout.height, int)):
        raise ValueError("layout size must be integral")
    if layout.width <= 0 or layout.height <= 0:
        raise ValueError(f"invalid canvas size {layout.width}x{layout.height}")

    img = Image.new("RGB", (layout.width, layout.height), color="black")
    draw = ImageDraw.Draw(img)
    for element in layout.elements:
        if isinstance(element, Rect):
            draw.rectangle(
                (element.x, element.y, element.x + element.width - 1, element.y + element.height - 1),
                fill=element.fill,
            )
        elif isinstance(element, Text):
            anchor = "rs" if element.anchor == "end" else "ls"
            draw.text(
                (element.x, element.y), element.content,
                fill=element.fill, font=load_font(element.size, element.bold), anchor=anchor,
            )
        else:
            raise ValueError(f"unknown layout element {element!r}")

    buf = io.BytesIO()
    img.save(buf, "PNG")
    return buf.getvalue()


class ReportRenderer:
    """Reads the current aggregates from the database and renders them."""

    def snapshot(self):
        total = Country.objects.count()
        top = list(
            Country.objects.filter(estimated_gdp__isnull=False)
            .order_by("-estimated_gdp", "name")
            .values_list("name", "estimated_gdp")[:TOP_N]
        )
        return total, top

    def render(self):
        total, top = self.snapshot()
        timestamp = get_now().strftime("%Y-%m-%d %H:%M:%S UTC")
        return rasterize(build_layout(total, top, timestamp))


class ReportCache:
    """Single-slot store for the latest summary image."""

    FILENAME = "summary.png"

    def __init__(self, directory=None):
        self.directory = directory

    @property
    def path(self):
        return os.path.join(self.directory or config.cache_path, self.FILENAME)

    def exists(self):
        return os.path.exists(self.path)

    def store(self, bitmap):
        path = self.path
        os.makedirs(os.path.dirname(path), exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=os.path.dirname(path), suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(bitmap)
            os.replace(tmp, path)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)
        logger.info("Summary image saved to %s", path)
        return path

    def load(self):
        try:
            with open(self.path, "rb") as fh:
                return fh.read()
        except FileNotFoundError as e:
            raise NotFound("Summary image not found") from e


_render_lock = threading.Lock()


def render_and_store(renderer=None, cache=None):
    """Render the report and overwrite the cached image, one writer at a time."""
    renderer = renderer or ReportRenderer()
    cache = cache or ReportCache()
    with _render_lock:
        return cache.store(renderer.render())

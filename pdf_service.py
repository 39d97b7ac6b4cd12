"""Paginated PDF rendering of workout plans.

Layout works top-down in millimetres: a cursor ``y`` starts at the top
margin of each page and every drawn block advances it by a fixed amount.
Page breaks are decided before a block is drawn, so a week, day or
exercise row is never split, but a day's column header row is not
repeated when its exercise list continues on the next page.
"""

from __future__ import annotations

import base64
import datetime
import io
import re
import threading
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger
from PIL import Image
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from models import DEFAULT_LINE_COLOR, CoachProfile, Workout

ACCENT = (79, 70, 229)
BLACK = (0, 0, 0)
GREY = (100, 100, 100)
LIGHT_GREY = (150, 150, 150)

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_ITALIC = "Helvetica-Oblique"

# x offsets from the left margin of the exercise table columns
COL_NAME = 10
COL_NAME_WITH_IMAGE = 18
COL_SETS = 70
COL_REPS = 95
COL_LOAD = 120
COL_REST = 150

WEEK_BREAK = 80
DAY_BREAK = 60
ROW_BREAK = 30


class GenerationCancelled(Exception):
    """Raised when a render is aborted at a week boundary."""


@dataclass
class RenderedDocument:
    content: bytes
    filename: str
    page_count: int
    media_type: str = "application/pdf"

    def suggested_path(self, export_path: Optional[str] = None) -> str:
        """Prefix the filename with the coach's export path hint, if any."""
        if export_path and export_path.strip():
            return f"{export_path.strip().rstrip('/')}/{self.filename}"
        return self.filename


def plan_filename(client_name: str) -> str:
    slug = re.sub(r"\s+", "-", client_name).lower()
    return f"plan-{slug}.pdf"


def decode_image(data: str) -> ImageReader:
    """Decode a data URL or bare base64 payload into a drawable image.

    Raises ``ValueError`` or ``OSError`` when the payload is not a readable
    image.
    """
    payload = data.partition(",")[2] if data.startswith("data:") else data
    raw = base64.b64decode(payload, validate=True)
    img = Image.open(io.BytesIO(raw))
    img.load()
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    return ImageReader(img)


def contact_line(profile: CoachProfile) -> str:
    parts = []
    if profile.email:
        parts.append(f"Email: {profile.email}")
    if profile.phone:
        parts.append(f"Tel: {profile.phone}")
    if profile.instagram:
        handle = profile.instagram
        if not handle.startswith(("@", "http")):
            handle = f"@{handle}"
        parts.append(f"Instagram: {handle}")
    if profile.facebook:
        parts.append(f"Facebook: {profile.facebook}")
    if profile.website:
        site = profile.website
        if not site.startswith("http"):
            site = f"https://{site}"
        parts.append(f"Web: {site}")
    return " • ".join(parts)


class _PageWriter:
    """Thin wrapper over a reportlab canvas using top-down millimetres."""

    def __init__(self, c: canvas.Canvas, page_height: float) -> None:
        self.c = c
        self.page_height = page_height
        self._font = (FONT, 10)

    def _y(self, y: float) -> float:
        return (self.page_height - y) * mm

    def font(self, name: str, size: float, color=BLACK) -> None:
        self._font = (name, size)
        self.c.setFont(name, size)
        self.c.setFillColorRGB(*(v / 255 for v in color))

    def text(self, s: str, x: float, y: float, align: str = "left") -> None:
        if align == "center":
            self.c.drawCentredString(x * mm, self._y(y), s)
        elif align == "right":
            self.c.drawRightString(x * mm, self._y(y), s)
        else:
            self.c.drawString(x * mm, self._y(y), s)

    def lines(self, lines: List[str], x: float, y: float, step: float, align: str = "left") -> None:
        for idx, line in enumerate(lines):
            self.text(line, x, y + idx * step, align)

    def split(self, s: str, width: float) -> List[str]:
        name, size = self._font
        return simpleSplit(s, name, size, width * mm)

    def rule(self, x1: float, x2: float, y: float, color, width: float) -> None:
        self.c.setStrokeColor(color)
        self.c.setLineWidth(width * mm)
        self.c.line(x1 * mm, self._y(y), x2 * mm, self._y(y))

    def image(self, reader: ImageReader, x: float, y: float, w: float, h: float) -> None:
        self.c.drawImage(
            reader,
            x * mm,
            self._y(y + h),
            width=w * mm,
            height=h * mm,
            preserveAspectRatio=True,
            mask="auto",
        )

    def new_page(self) -> None:
        self.c.showPage()


class PDFGenerator:
    """Renders a workout and optional coach profile into a PDF document."""

    def __init__(
        self,
        product_name: str = "Coach Planner",
        compress: bool = True,
        page_size=A4,
        margin: float = 20,
    ) -> None:
        self.product_name = product_name
        self.compress = compress
        self.page_size = page_size
        self.page_width = page_size[0] / mm
        self.page_height = page_size[1] / mm
        self.margin = margin

    @property
    def text_width(self) -> float:
        return self.page_width - 2 * self.margin

    def generate(
        self,
        workout: Workout,
        coach_profile: Optional[CoachProfile] = None,
        cancel: Optional[threading.Event] = None,
        today: Optional[datetime.date] = None,
    ) -> RenderedDocument:
        buffer = io.BytesIO()
        c = canvas.Canvas(
            buffer,
            pagesize=self.page_size,
            pageCompression=1 if self.compress else 0,
        )
        c.setTitle(workout.display_name)
        c.setAuthor(workout.coach_name)
        c.setCreator(self.product_name)
        w = _PageWriter(c, self.page_height)
        line_color = HexColor(
            coach_profile.pdf_line_color if coach_profile else DEFAULT_LINE_COLOR
        )

        y = self.margin
        y = self._header(w, workout, coach_profile, line_color, y)
        y += 10
        y = self._workout_info(w, workout, y)
        y += 10
        if workout.description:
            y = self._paragraph(w, "DESCRIPTION", workout.description, y)
            y += 10
        y = self._weekly_progression(w, workout, line_color, y, cancel)
        if workout.dietary_advice:
            if y > self.page_height - DAY_BREAK:
                w.new_page()
                y = self.margin
            y = self._paragraph(w, "DIETARY ADVICE", workout.dietary_advice, y)
        self._footer(w, coach_profile, today or datetime.date.today())

        page_count = c.getPageNumber()
        c.showPage()
        c.save()
        logger.debug(f"Rendered workout {workout.id} on {page_count} page(s)")
        return RenderedDocument(
            content=buffer.getvalue(),
            filename=plan_filename(workout.client_name),
            page_count=page_count,
        )

    def _draw_image(self, w: _PageWriter, data: str, x: float, y: float, size: float, what: str) -> bool:
        try:
            reader = decode_image(data)
            w.image(reader, x, y, size, size)
        except (ValueError, OSError) as e:
            logger.warning(f"Could not add {what} to PDF: {e}")
            return False
        return True

    def _header(self, w, workout, profile, line_color, y: float) -> float:
        if profile and profile.logo:
            self._draw_image(w, profile.logo, self.margin, y, 25, "logo")

        center = self.page_width / 2
        w.font(FONT_BOLD, 24, ACCENT)
        w.text("WORKOUT PLAN", center, y + 10, "center")
        y += 25

        w.font(FONT_BOLD, 14, BLACK)
        w.text(f"{workout.workout_type} — {workout.duration} weeks", center, y, "center")
        y += 15

        if profile and profile.name:
            w.font(FONT_BOLD, 12, GREY)
            w.text(f"Coach: {profile.name}", center, y, "center")
            y += 10

        w.rule(self.margin, self.page_width - self.margin, y, line_color, 1)
        y += 10
        return y

    def _workout_info(self, w, workout, y: float) -> float:
        mid = self.page_width / 2
        rows = [
            ("COACH:", workout.coach_name, "CLIENT:", workout.client_name),
            ("TYPE:", workout.workout_type, "DURATION:", f"{workout.duration} weeks"),
        ]
        for left_label, left_value, right_label, right_value in rows:
            w.font(FONT_BOLD, 12)
            w.text(left_label, self.margin, y)
            w.text(right_label, mid, y)
            w.font(FONT, 12)
            w.text(left_value, self.margin + 25, y)
            w.text(right_value, mid + 30, y)
            y += 10
        return y

    def _paragraph(self, w, heading: str, body: str, y: float) -> float:
        w.font(FONT_BOLD, 14, ACCENT)
        w.text(heading, self.margin, y)
        y += 8

        w.font(FONT, 10)
        lines = w.split(body, self.text_width)
        w.lines(lines, self.margin, y, 5)
        return y + len(lines) * 5

    def _weekly_progression(self, w, workout, line_color, y: float, cancel) -> float:
        w.font(FONT_BOLD, 14, ACCENT)
        w.text("WEEKLY PROGRESSION", self.margin, y)
        y += 10

        for week in workout.weeks:
            if cancel is not None and cancel.is_set():
                raise GenerationCancelled(f"rendering of workout {workout.id} cancelled")
            if y > self.page_height - WEEK_BREAK:
                w.new_page()
                y = self.margin

            w.font(FONT_BOLD, 12)
            w.text(f"WEEK {week.number}", self.margin, y)
            y += 8

            if week.notes:
                w.font(FONT_ITALIC, 9)
                lines = w.split(week.notes, self.text_width)
                w.lines(lines, self.margin, y, 4)
                y += len(lines) * 4

            for day in week.days:
                y = self._day(w, day, line_color, y)
                y += 8

            y += 5
        return y

    def _day(self, w, day, line_color, y: float) -> float:
        m = self.margin
        if y > self.page_height - DAY_BREAK:
            w.new_page()
            y = m

        w.font(FONT_BOLD, 11, ACCENT)
        w.text(day.name, m + 5, y)
        y += 8

        if day.notes:
            w.font(FONT_ITALIC, 8)
            lines = w.split(day.notes, self.text_width - 10)
            w.lines(lines, m + 10, y, 3)
            y += len(lines) * 3

        if not day.exercises:
            return y

        w.font(FONT_BOLD, 8)
        for label, col in (
            ("EXERCISE", COL_NAME),
            ("SETS", COL_SETS),
            ("REPS", COL_REPS),
            ("LOAD", COL_LOAD),
            ("REST", COL_REST),
        ):
            w.text(label, m + col, y)
        y += 5

        w.rule(m + 10, self.page_width - m - 10, y, line_color, 0.3)
        y += 3

        for exercise in day.exercises:
            if y > self.page_height - ROW_BREAK:
                w.new_page()
                y = m

            name_col = COL_NAME
            if exercise.image_url:
                self._draw_image(w, exercise.image_url, m + 5, y - 3, 8, f"image for {exercise.name!r}")
                name_col = COL_NAME_WITH_IMAGE

            w.font(FONT, 8)
            w.text(exercise.name or "", m + name_col, y)
            w.text(exercise.sets or "", m + COL_SETS, y)
            w.text(exercise.reps or "", m + COL_REPS, y)
            w.text(exercise.load or "", m + COL_LOAD, y)
            w.text(exercise.rest or "", m + COL_REST, y)
            y += 5

            if exercise.notes:
                w.font(FONT_ITALIC, 7)
                lines = w.split(f"Notes: {exercise.notes}", self.text_width - 20)
                w.lines(lines, m + 15, y, 3)
                y += len(lines) * 3
        return y

    def _footer(self, w, profile: Optional[CoachProfile], today: datetime.date) -> None:
        footer_y = self.page_height - 25

        if profile:
            contacts = contact_line(profile)
            if contacts:
                w.font(FONT, 8, GREY)
                lines = w.split(contacts, self.text_width)
                w.lines(lines, self.page_width / 2, footer_y, 3, "center")

        w.font(FONT_ITALIC, 8, LIGHT_GREY)
        if profile is None or profile.show_watermark:
            w.text(f"Generated by {self.product_name}", self.margin, footer_y + 10)
        w.text(today.strftime("%d/%m/%Y"), self.page_width - self.margin, footer_y + 10, "right")

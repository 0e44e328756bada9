"""
Application Layout - pure page layout for the merchant application PDF.

Layout is an accumulator: every block function takes the current PageState and returns
(new PageState, draw commands). Nothing here touches a canvas, so pagination decisions
can be tested without a drawing backend.

Coordinates are top-down points from the page's top-left corner; the canvas backend
converts them. Pages are addressed by zero-based index.

Two sequential steps:
- layout_application(): header, sections and signature block -> LayoutResult
- stamp_footers(): page X of N, generation timestamp, confidentiality marker,
  run only once the total page count is known
"""
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

from reportlab.pdfbase.pdfmetrics import stringWidth

from models.merchant import FormSubmission
from services.field_formatters import PLACEHOLDER, FieldKind, format_date, format_field, safe_text
from services.pdf_document import PAGE_HEIGHT, PAGE_WIDTH, fit_within

COMPANY_NAME = os.getenv("COMPANY_NAME", "Halo Payments")

COLORS = {
    "primary": "#2563EB",
    "secondary": "#8B5CF6",
    "dark": "#0F172A",
    "dark_gray": "#1E293B",
    "medium_gray": "#475569",
    "light_gray": "#94A3B8",
    "border": "#E2E8F0",
    "background": "#F8FAFC",
    "header_band": "#F1F5F9",
    "white": "#FFFFFF",
}

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
# Standard Type 1 faces only cover WinAnsi; anything else is drawn as a box.
FONT_ENCODING = "cp1252"

# Geometry (points)
MARGIN = 50.0
FOOTER_RESERVE = 50.0
CONTENT_LEFT = MARGIN
CONTENT_RIGHT = PAGE_WIDTH - MARGIN
CONTENT_WIDTH = CONTENT_RIGHT - CONTENT_LEFT
CONTENT_BOTTOM = PAGE_HEIGHT - MARGIN - FOOTER_RESERVE
NEW_PAGE_TOP = MARGIN + 20
HEADER_HEIGHT = 100.0
BODY_TOP = 120.0

SECTION_HEIGHT = 36.0
ROW_HEIGHT = 16.0
CARD_PADDING = 12.0
CARD_GAP = 12.0
LABEL_WIDTH = 180.0
VALUE_FONT_SIZE = 10.0

SIGNATURE_BOX_HEIGHT = 140.0
SIGNATURE_IMAGE_HEIGHT = 70.0
SIGNATURE_DETAILS_HEIGHT = 40.0
SIGNATURE_BLOCK_HEIGHT = 8 + SIGNATURE_BOX_HEIGHT + 20 + SIGNATURE_DETAILS_HEIGHT

FOOTER_RULE_Y = PAGE_HEIGHT - 47
FOOTER_TEXT_Y = PAGE_HEIGHT - 27


# ============================================================================
# DRAW COMMANDS
# ============================================================================

@dataclass(frozen=True)
class TextCommand:
    page: int
    x: float
    baseline: float
    text: str
    font: str = FONT
    size: float = 10.0
    color: str = COLORS["dark_gray"]
    align: str = "left"  # left | center | right (x is the anchor)


@dataclass(frozen=True)
class RectCommand:
    page: int
    x: float
    top: float
    width: float
    height: float
    fill: Optional[str] = None
    stroke: Optional[str] = None
    line_width: float = 1.0
    radius: float = 0.0


@dataclass(frozen=True)
class LineCommand:
    page: int
    x1: float
    y1: float
    x2: float
    y2: float
    color: str = COLORS["border"]
    line_width: float = 1.0


@dataclass(frozen=True)
class ImageCommand:
    page: int
    x: float
    top: float
    width: float
    height: float
    image: bytes = field(repr=False)
    # Drawn instead of the image when embedding fails
    fallback: Tuple["DrawCommand", ...] = ()


DrawCommand = Union[TextCommand, RectCommand, LineCommand, ImageCommand]


# ============================================================================
# LAYOUT STATE AND BLOCKS
# ============================================================================

@dataclass(frozen=True)
class PageState:
    page: int = 0
    cursor: float = BODY_TOP


@dataclass(frozen=True)
class InfoRow:
    label: str
    value: str


@dataclass(frozen=True)
class SectionBlock:
    title: str
    rows: Tuple[InfoRow, ...]


@dataclass(frozen=True)
class SignatureImage:
    """Decoded signature raster, normalized to PNG bytes."""
    content: bytes = field(repr=False)
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class LayoutResult:
    page_count: int
    commands: Tuple[DrawCommand, ...]

    def commands_for_page(self, page: int) -> List[DrawCommand]:
        return [c for c in self.commands if c.page == page]


LayoutStep = Tuple[PageState, List[DrawCommand]]


def ensure_space(state: PageState, height: float) -> PageState:
    """Start a new page when a block of `height` would cross the content bottom."""
    if state.cursor + height > CONTENT_BOTTOM:
        return PageState(page=state.page + 1, cursor=NEW_PAGE_TOP)
    return state


def card_height(row_count: int) -> float:
    return row_count * ROW_HEIGHT + 2 * CARD_PADDING


def unencodable_chars(text: str) -> List[str]:
    """Distinct characters of text that the standard fonts cannot draw, in order of appearance."""
    missing: List[str] = []
    for ch in text:
        if ch in missing:
            continue
        try:
            ch.encode(FONT_ENCODING)
        except UnicodeEncodeError:
            missing.append(ch)
    return missing


def fit_text(text: str, font: str, size: float, max_width: float) -> str:
    """Truncate a single-line value with an ellipsis so it fits max_width."""
    if stringWidth(text, font, size) <= max_width:
        return text
    ellipsis = "…"
    while text and stringWidth(text + ellipsis, font, size) > max_width:
        text = text[:-1]
    return text.rstrip() + ellipsis


def layout_header(app_id: str) -> LayoutStep:
    badge_w, badge_h = 160.0, 48.0
    badge_x = PAGE_WIDTH - MARGIN - badge_w
    badge_top = 34.0
    text_x = MARGIN + 80
    commands: List[DrawCommand] = [
        RectCommand(0, 0, 0, PAGE_WIDTH, HEADER_HEIGHT, fill=COLORS["header_band"]),
        RectCommand(0, 0, 0, 6, HEADER_HEIGHT, fill=COLORS["primary"]),
        RectCommand(0, MARGIN + 16, badge_top, badge_h, badge_h, fill=COLORS["primary"], radius=10),
        TextCommand(0, MARGIN + 16 + badge_h / 2, badge_top + 31, COMPANY_NAME[:1].upper() or "M",
                    font=FONT_BOLD, size=22, color=COLORS["white"], align="center"),
        TextCommand(0, text_x, 56, COMPANY_NAME, font=FONT_BOLD, size=24, color=COLORS["dark"]),
        TextCommand(0, text_x, 74, "MERCHANT APPLICATION", size=11, color=COLORS["medium_gray"]),
        RectCommand(0, badge_x, badge_top, badge_w, badge_h, stroke=COLORS["border"], line_width=1.5, radius=8),
        TextCommand(0, badge_x + badge_w / 2, badge_top + 17, "APPLICATION ID",
                    size=8, color=COLORS["medium_gray"], align="center"),
        TextCommand(0, badge_x + badge_w / 2, badge_top + 36, f"APP-{safe_text(app_id) or 'PENDING'}",
                    font=FONT_BOLD, size=12, color=COLORS["dark"], align="center"),
    ]
    return PageState(page=0, cursor=BODY_TOP), commands


def layout_section_title(state: PageState, title: str, keep_with: float = 0.0) -> LayoutStep:
    """Section title plus divider rule, kept on the same page as the next `keep_with` points."""
    state = ensure_space(state, SECTION_HEIGHT + keep_with)
    top = state.cursor + 6
    commands: List[DrawCommand] = [
        RectCommand(state.page, CONTENT_LEFT - 12, top, 4, 20, fill=COLORS["secondary"]),
        TextCommand(state.page, CONTENT_LEFT, top + 15, title, font=FONT_BOLD, size=14, color=COLORS["dark"]),
        LineCommand(state.page, CONTENT_LEFT, top + 24, CONTENT_RIGHT, top + 24,
                    color=COLORS["border"], line_width=2),
    ]
    return PageState(state.page, state.cursor + SECTION_HEIGHT), commands


def layout_info_card(state: PageState, rows: Tuple[InfoRow, ...]) -> LayoutStep:
    height = card_height(len(rows))
    state = ensure_space(state, height)
    top = state.cursor
    value_x = CONTENT_LEFT + LABEL_WIDTH
    value_width = CONTENT_RIGHT - value_x
    commands: List[DrawCommand] = [
        RectCommand(state.page, CONTENT_LEFT - 4, top, CONTENT_WIDTH + 8, height,
                    fill=COLORS["white"], stroke=COLORS["border"], radius=8),
    ]
    for index, row in enumerate(rows):
        baseline = top + CARD_PADDING + index * ROW_HEIGHT + 11
        commands.append(TextCommand(state.page, CONTENT_LEFT, baseline,
                                    fit_text(row.label, FONT, 9, LABEL_WIDTH - 10),
                                    size=9, color=COLORS["medium_gray"]))
        commands.append(TextCommand(state.page, value_x, baseline,
                                    fit_text(row.value or PLACEHOLDER, FONT_BOLD, VALUE_FONT_SIZE, value_width),
                                    font=FONT_BOLD, size=VALUE_FONT_SIZE, color=COLORS["dark_gray"]))
    return PageState(state.page, top + height + CARD_GAP), commands


def layout_section(state: PageState, section: SectionBlock) -> LayoutStep:
    state, title_commands = layout_section_title(state, section.title, keep_with=card_height(len(section.rows)))
    state, card_commands = layout_info_card(state, section.rows)
    return state, title_commands + card_commands


def signature_placeholder(page: int, box_x: float, box_top: float, box_w: float) -> Tuple[DrawCommand, ...]:
    return (
        TextCommand(page, box_x + box_w / 2, box_top + 88, "×", size=32,
                    color=COLORS["border"], align="center"),
        TextCommand(page, box_x + 20, box_top + 108, "Signature not provided",
                    size=9, color=COLORS["light_gray"]),
    )


def layout_signature(
    state: PageState,
    signature: Optional[SignatureImage],
    printed_name: str,
    signature_date: str,
) -> LayoutStep:
    state = ensure_space(state, SECTION_HEIGHT + SIGNATURE_BLOCK_HEIGHT)
    state, commands = layout_section_title(state, "Authorization & Signature")
    page = state.page

    box_x = CONTENT_LEFT - 4
    box_w = CONTENT_WIDTH + 8
    box_top = state.cursor + 8
    commands += [
        RectCommand(page, box_x, box_top, box_w, SIGNATURE_BOX_HEIGHT, fill=COLORS["background"],
                    stroke=COLORS["border"], line_width=2, radius=10),
        TextCommand(page, box_x + 20, box_top + 24, "ELECTRONIC SIGNATURE", size=9, color=COLORS["medium_gray"]),
    ]

    placeholder = signature_placeholder(page, box_x, box_top, box_w)
    if signature is not None:
        draw_w, draw_h = fit_within(signature.width, signature.height, box_w - 40, SIGNATURE_IMAGE_HEIGHT)
        image_top = box_top + 40 + (SIGNATURE_IMAGE_HEIGHT - draw_h) / 2
        commands.append(ImageCommand(page, box_x + 20, image_top, draw_w, draw_h,
                                     image=signature.content, fallback=placeholder))
    else:
        commands += list(placeholder)

    rule_y = box_top + SIGNATURE_BOX_HEIGHT - 20
    commands.append(LineCommand(page, box_x + 20, rule_y, box_x + box_w - 20, rule_y, color=COLORS["light_gray"]))

    details_top = box_top + SIGNATURE_BOX_HEIGHT + 20
    col2_x = CONTENT_LEFT + box_w / 2
    date_text = format_date(signature_date) if safe_text(signature_date) else PLACEHOLDER
    commands += [
        TextCommand(page, CONTENT_LEFT, details_top + 9, "Printed Name", size=9, color=COLORS["medium_gray"]),
        TextCommand(page, CONTENT_LEFT, details_top + 26,
                    fit_text(safe_text(printed_name) or PLACEHOLDER, FONT_BOLD, 11, box_w / 2 - 10),
                    font=FONT_BOLD, size=11),
        TextCommand(page, col2_x, details_top + 9, "Date Signed", size=9, color=COLORS["medium_gray"]),
        TextCommand(page, col2_x, details_top + 26, date_text, font=FONT_BOLD, size=11),
    ]
    return PageState(page, details_top + SIGNATURE_DETAILS_HEIGHT), commands


# ============================================================================
# APPLICATION SECTIONS
# ============================================================================

def _attr(name: str) -> Callable[[FormSubmission], str]:
    return lambda form: getattr(form, name)


def _mailing(name: str) -> Callable[[FormSubmission], str]:
    """Mailing field; falls back to the physical address when marked as the same."""
    def read(form: FormSubmission) -> str:
        value = getattr(form, f"business_{name}")
        if not value and form.business_same_as_physical:
            return getattr(form, f"physical_{name}")
        return value
    return read


def _address_rows(read: Callable[[str], Callable[[FormSubmission], str]], prefix: str):
    return [
        ("Street Address", FieldKind.TEXT, read(f"{prefix}street")),
        ("Unit/Suite", FieldKind.TEXT, read(f"{prefix}unit")),
        ("City", FieldKind.TEXT, read(f"{prefix}city")),
        ("State", FieldKind.TEXT, read(f"{prefix}state")),
        ("ZIP Code", FieldKind.TEXT, read(f"{prefix}zip")),
    ]


SECTION_TABLE: List[Tuple[str, List[Tuple[str, FieldKind, Callable[[FormSubmission], str]]]]] = [
    ("Business Information", [
        ("Legal Business Name", FieldKind.TEXT, _attr("legal_business_name")),
        ("DBA Name", FieldKind.TEXT, _attr("dba_name")),
        ("Type of Business", FieldKind.TEXT, lambda form: form.display_business_type),
        ("Date Established", FieldKind.DATE, _attr("business_established_date")),
        ("Taxpayer ID (EIN)", FieldKind.TAX_ID, _attr("taxpayer_id")),
        ("FNS Number", FieldKind.TEXT, _attr("fns_number")),
        ("Annual Revenue (approx.)", FieldKind.CURRENCY, _attr("annual_revenue")),
        ("Business Phone", FieldKind.PHONE, _attr("business_phone")),
        ("Business Email", FieldKind.TEXT, _attr("business_email")),
        ("Business Website", FieldKind.TEXT, _attr("business_website")),
    ]),
    ("Physical Location", _address_rows(_attr, "physical_")),
    ("Mailing Address", _address_rows(lambda name: _mailing(name), "")),
    ("Principal / Owner Information", [
        ("Full Name", FieldKind.TEXT, lambda form: form.owner_name),
        ("Title", FieldKind.TEXT, _attr("owner_title")),
        ("Ownership Percentage", FieldKind.PERCENT, _attr("owner_ownership_pct")),
        ("Date of Birth", FieldKind.DATE, _attr("dob")),
        ("Social Security Number", FieldKind.MASKED_SSN, _attr("owner_ssn")),
        ("Email Address", FieldKind.TEXT, _attr("contact_email")),
        ("Cell Phone", FieldKind.PHONE, _attr("contact_phone")),
        ("Home Phone", FieldKind.PHONE, _attr("owner_home_phone")),
    ]),
    ("Principal Residence", _address_rows(_attr, "principal_address_")),
    ("Identification", [
        ("License Number", FieldKind.TEXT, _attr("id_number")),
        ("Issuing State", FieldKind.TEXT, _attr("dl_state")),
        ("Expiration Date", FieldKind.DATE, _attr("id_exp")),
    ]),
    ("Banking Information", [
        ("Bank Name", FieldKind.TEXT, _attr("bank_name")),
        ("Routing Number", FieldKind.TEXT, _attr("routing_number")),
        ("Account Number", FieldKind.MASKED_DIGITS, _attr("account_number")),
    ]),
    ("Additional Information", [
        ("Other Notes", FieldKind.TEXT, _attr("other_notes")),
    ]),
]


def build_sections(form: FormSubmission) -> List[SectionBlock]:
    """Resolve the section table against a submission into formatted rows."""
    sections = []
    for title, fields in SECTION_TABLE:
        rows = tuple(InfoRow(label, format_field(kind, read(form))) for label, kind, read in fields)
        sections.append(SectionBlock(title=title, rows=rows))
    return sections


def layout_application(
    form: FormSubmission,
    app_id: str,
    signature: Optional[SignatureImage] = None,
) -> LayoutResult:
    state, commands = layout_header(app_id)
    for section in build_sections(form):
        state, section_commands = layout_section(state, section)
        commands += section_commands
    state, signature_commands = layout_signature(state, signature, form.signature_name, form.signature_date)
    commands += signature_commands
    return LayoutResult(page_count=state.page + 1, commands=tuple(commands))


# ============================================================================
# FOOTERS (second pass)
# ============================================================================

def footer_label(page: int, page_count: int) -> str:
    return f"Page {page + 1} of {page_count}"


def stamp_footers(page_count: int, generated_at: datetime) -> Tuple[DrawCommand, ...]:
    """Footer commands for every page of an already laid-out document."""
    generated = f"Generated: {generated_at.strftime('%m/%d/%Y %H:%M')} UTC"
    commands: List[DrawCommand] = []
    for page in range(page_count):
        commands += [
            LineCommand(page, CONTENT_LEFT, FOOTER_RULE_Y, CONTENT_RIGHT, FOOTER_RULE_Y, color=COLORS["border"]),
            TextCommand(page, CONTENT_LEFT, FOOTER_TEXT_Y, footer_label(page, page_count),
                        size=9, color=COLORS["medium_gray"]),
            TextCommand(page, PAGE_WIDTH / 2, FOOTER_TEXT_Y, generated,
                        size=8, color=COLORS["light_gray"], align="center"),
            TextCommand(page, CONTENT_RIGHT, FOOTER_TEXT_Y, "Confidential",
                        font=FONT_BOLD, size=8, color=COLORS["medium_gray"], align="right"),
        ]
    return tuple(commands)

"""
Build the PDF report of a security evaluation: header block, one row per question, approval trail.
"""
import io
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.pdfgen import canvas

from ..models.models import SecurityEvaluation


FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
MARGIN = 56
LINE = 16


def _label(obj, default: str = "-") -> str:
    if obj is None:
        return default
    return getattr(obj, "name_en", None) or getattr(obj, "name_ar", None) or default


def _question_text(detail) -> str:
    q = detail.question
    if q is None:
        return f"Question {detail.question_id}"
    return q.question_text_en or q.question_text_ar


def _wrap(text: str, width: int = 80):
    words = (text or "").split()
    line = ""
    for w in words:
        if len(line) + len(w) + 1 > width:
            yield line
            line = w
        else:
            line = f"{line} {w}".strip()
    if line:
        yield line


class _Writer:
    """Top-down text cursor that starts a new page when it runs out of room."""

    def __init__(self, c: canvas.Canvas):
        self.c = c
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def ensure(self, lines: int = 1):
        if self.y - lines * LINE < MARGIN:
            self.c.showPage()
            self.y = self.height - MARGIN

    def text(self, value: str, x: float = MARGIN, bold: bool = False, size: int = 10):
        self.ensure()
        self.c.setFont(FONT_BOLD if bold else FONT, size)
        self.c.drawString(x, self.y, value)
        self.y -= LINE

    def rule(self):
        self.ensure()
        self.c.setStrokeColor(colors.lightgrey)
        self.c.line(MARGIN, self.y + LINE / 2, self.width - MARGIN, self.y + LINE / 2)
        self.c.setStrokeColor(colors.black)


def _fmt_score(score: Optional[float]) -> str:
    return "-" if score is None else f"{score:.2f}"


def build_evaluation_pdf(ev: SecurityEvaluation) -> bytes:
    """Generate PDF bytes for the given evaluation."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Security evaluation {ev.evaluation_year}-{ev.evaluation_month:02d}")
    w = _Writer(c)

    w.text("Security Company Evaluation", bold=True, size=16)
    w.y -= LINE / 2
    w.text(f"Company: {_label(ev.company)}")
    w.text(f"Period: {ev.evaluation_year}-{ev.evaluation_month:02d}")
    w.text(f"Evaluator: {_label(ev.evaluator)}  ({_label(ev.historical_job)})")
    w.text(f"Contract no: {ev.historical_contract_no or '-'}")
    w.text(f"Guards: {ev.historical_guard_count if ev.historical_guard_count is not None else '-'}"
           f"    Violations: {ev.historical_violations_count if ev.historical_violations_count is not None else '-'}")
    w.text(f"Status: {ev.status}    Overall score: {_fmt_score(ev.overall_score)}", bold=True)
    w.rule()

    w.text("Questions", bold=True, size=12)
    for i, d in enumerate(ev.details, start=1):
        lines = list(_wrap(_question_text(d))) or [""]
        w.ensure(len(lines) + 1)
        w.text(f"{i}. {lines[0]}")
        for extra in lines[1:]:
            w.text(extra, x=MARGIN + 14)
        c.setFont(FONT_BOLD, 10)
        c.drawRightString(w.width - MARGIN, w.y + LINE, f"{d.selected_rating} / 5")
        if d.note:
            for note_line in _wrap(d.note, 90):
                w.text(note_line, x=MARGIN + 14, size=8)
    w.rule()

    if ev.summary:
        w.text("Summary", bold=True, size=12)
        for line in _wrap(ev.summary, 95):
            w.text(line)
        w.rule()

    if ev.approvals:
        w.text("Approval history", bold=True, size=12)
        for a in ev.approvals:
            when = a.created_at.strftime("%Y-%m-%d %H:%M") if a.created_at else ""
            w.text(f"{when}  {_label(a.approver)}: {a.action} -> {a.status_after}")
            if a.note:
                w.text(a.note, x=MARGIN + 14, size=8)

    c.showPage()
    c.save()
    return buf.getvalue()

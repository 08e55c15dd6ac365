from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Iterable, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from emergency_coord.models import Emergency


def _fmt_time(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def build_pdf_summary(emergencies: Iterable[Emergency], generated_at: Optional[float] = None) -> bytes:
    buff = io.BytesIO()
    pdf = canvas.Canvas(buff, pagesize=letter)
    width, height = letter

    y = height - 40
    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawString(40, y, "Emergency Coordination Summary")
    y -= 18
    pdf.setFont("Helvetica", 10)
    stamp = _fmt_time(generated_at) if generated_at is not None else datetime.now(timezone.utc).isoformat()
    pdf.drawString(40, y, f"Generated: {stamp}")
    y -= 20

    for e in emergencies:
        if y < 120:
            pdf.showPage()
            y = height - 40

        pdf.setStrokeColor(colors.darkred if e.severity.name == "CRITICAL" else colors.darkblue)
        pdf.rect(35, y - 80, width - 70, 75, stroke=1, fill=0)
        pdf.setFont("Helvetica-Bold", 10)
        flag = " | verified" if e.verified else ""
        pdf.drawString(45, y - 15, f"Emergency #{e.emergency_id} | {e.severity.name} | {e.status.value}{flag}")
        pdf.setFont("Helvetica", 9)
        pdf.drawString(45, y - 30, f"Location: {e.location[:90]}")
        pdf.drawString(45, y - 43, f"Reporter: {e.reporter}  |  Reported: {_fmt_time(e.reported_at)}")
        pdf.drawString(45, y - 56, f"Responder: {e.assigned_responder or 'unassigned'}")
        pdf.drawString(45, y - 69, f"Details: {e.description[:95]}")

        y -= 90

    pdf.save()
    buff.seek(0)
    return buff.read()

import io
import logging
from typing import Dict, List, Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

MARGIN = 20 * mm
LINE = 6 * mm

# Built-in Helvetica has no rupee glyph
CURRENCY = 'Rs.'


def _paper_line(index: int, paper: Dict) -> str:
    code = paper.get('courseCode') or paper.get('code') or paper.get('subjectCode') or ''
    name = paper.get('courseName') or paper.get('name') or paper.get('subjectName') or ''
    line = f"{index}. {code} - {name}"
    fee = paper.get('fee')
    if fee is not None:
        line += f"  {CURRENCY} {fee}"
    return line


def _footer(pdf, width):
    pdf.setFont('Helvetica', 11)
    pdf.drawRightString(width - MARGIN, MARGIN, 'Controller of Examinations')


def render_registration_pdf(students: List[Dict], papers: List[Dict], total_amount,
                            semester: Optional[str] = None,
                            regulation: Optional[str] = None,
                            program_code: Optional[str] = None,
                            college_name: str = '',
                            batch: Optional[str] = None) -> bytes:
    """
    Render an exam registration form, one A4 page per student.

    Each form carries the programme details, the student's name and
    register number, the selected papers and the total fee. A paper list
    too long for one page continues on further pages of the same form;
    every page gets the signature footer.
    """
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle('Exam Registration')
    width, height = A4

    for student in students:
        y = height - MARGIN

        pdf.setFont('Helvetica-Bold', 14)
        pdf.drawCentredString(width / 2, y, college_name)
        y -= LINE
        pdf.setFont('Helvetica', 11)
        pdf.drawCentredString(width / 2, y, 'Autonomous - Examination Registration')
        y -= 2 * LINE

        details = [
            ('Program Code', program_code),
            ('Regulation', regulation),
            ('Semester', semester),
        ]
        if batch:
            details.insert(0, ('Batch', batch))
        for label, value in details:
            pdf.drawString(MARGIN, y, f"{label:<13}: {value or '-'}")
            y -= LINE
        y -= LINE

        pdf.drawString(MARGIN, y, f"Student Name : {student.get('name', '')}")
        pdf.drawString(width / 2 + 10 * mm, y, f"Reg No : {student.get('regNo', '')}")
        y -= 2 * LINE

        pdf.setFont('Helvetica-Bold', 11)
        pdf.drawString(MARGIN, y, 'Selected Papers:')
        y -= LINE
        pdf.setFont('Helvetica', 11)
        if not papers:
            pdf.drawString(MARGIN, y, 'No papers selected.')
            y -= LINE
        for index, paper in enumerate(papers, 1):
            if y < 4 * MARGIN:
                _footer(pdf, width)
                pdf.showPage()
                pdf.setFont('Helvetica', 11)
                y = height - MARGIN
            pdf.drawString(MARGIN, y, _paper_line(index, paper))
            y -= LINE
        y -= LINE

        pdf.setFont('Helvetica-Bold', 12)
        pdf.drawRightString(width - MARGIN, y, f"Total Amount: {CURRENCY} {total_amount or 0}")
        _footer(pdf, width)

        pdf.showPage()

    pdf.save()
    logger.info(f"Rendered registration PDF for {len(students)} student(s), {len(papers)} paper(s)")
    return buffer.getvalue()

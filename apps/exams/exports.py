# exams/exports.py

"""
Downloadable exam documents:
- marksheet PDF (report card)
- exam score sheet XLSX
- cohort marksheet CSV
"""

from django.http import HttpResponse
from django.utils import timezone
from django.utils.html import escape
from io import BytesIO
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from core.utils import generate_csv_response

logger = logging.getLogger(__name__)

HEADER_COLOR = '4472C4'


def _stamp():
    return timezone.now().strftime("%Y%m%d")


# =============================================================================
# MARKSHEET PDF
# =============================================================================

def marksheet_pdf_response(marksheet):
    """Report card of one marksheet as a PDF download"""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title="Marksheet")
    elements = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'MarksheetTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#1a1a1a'),
        spaceAfter=12,
        alignment=TA_CENTER
    )

    student = marksheet.student
    class_instance = marksheet.class_instance

    elements.append(Paragraph(marksheet.campus.name, title_style))
    elements.append(Paragraph(f"Report Card - {marksheet.get_term_display()} {marksheet.academic_session}", styles['Heading2']))
    elements.append(Spacer(1, 12))

    info = Table([
        ['Student', student.display_name, 'Class', f"Grade {class_instance.grade}-{class_instance.section}"],
        ['Email', student.email, 'Rank', str(marksheet.rank) if marksheet.rank else '-'],
    ])
    info.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    elements.append(info)
    elements.append(Spacer(1, 16))

    data = [['Subject', 'Obtained', 'Total', 'Percentage', 'Grade']]
    for row in marksheet.subject_rows.select_related('subject'):
        data.append([
            row.subject.name,
            str(row.marks_obtained),
            str(row.total_marks),
            f"{row.percentage}%",
            row.grade,
        ])
    data.append([
        'Grand Total',
        str(marksheet.grand_obtained),
        str(marksheet.grand_total),
        f"{marksheet.overall_percentage}%",
        marksheet.overall_grade,
    ])

    table = Table(data, colWidths=[170, 75, 75, 90, 60])
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(f'#{HEADER_COLOR}')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (1, 0), (-1, -1), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('BACKGROUND', (0, 1), (-1, -2), colors.beige),
        ('GRID', (0, 0), (-1, -1), 1, colors.black)
    ]))
    elements.append(table)
    elements.append(Spacer(1, 16))

    elements.append(Paragraph(f"<b>Remarks:</b> {escape(marksheet.final_remarks) or '-'}", styles['Normal']))

    doc.build(elements)

    buffer.seek(0)
    filename = f"marksheet_{student.username}_{marksheet.term}_{marksheet.academic_session}.pdf"
    response = HttpResponse(buffer, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


# =============================================================================
# EXAM SCORE SHEET (XLSX)
# =============================================================================

def exam_scores_excel_response(exam, rows):
    """
    Score sheet of an exam.

    ``rows`` is the merged enrollment/score listing from ScoreService.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Scores"

    ws.append([f"{exam.name} ({exam.exam_type})", f"{exam.term} {exam.academic_session}"])
    ws.append([f"Total marks: {exam.total_marks}"])
    ws.append([])

    headers = ['Roll Number', 'Student', 'Marks Obtained', 'Total Marks', 'Present', 'Remarks']
    ws.append(headers)
    header_row = ws.max_row

    for cell in ws[header_row]:
        cell.fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type='solid')
        cell.font = Font(bold=True, color='FFFFFF')
        cell.alignment = Alignment(horizontal='center')

    for row in rows:
        ws.append([
            row['student']['roll_number'],
            row['student']['name'],
            float(row['marks_obtained']),
            float(exam.total_marks),
            '' if row['is_present'] is None else ('Yes' if row['is_present'] else 'No'),
            row['remarks'],
        ])

    for column, width in zip('ABCDEF', (14, 30, 16, 14, 10, 30)):
        ws.column_dimensions[column].width = width

    response = HttpResponse(
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    response['Content-Disposition'] = f'attachment; filename="scores_{exam.pk}_{_stamp()}.xlsx"'

    wb.save(response)
    return response


# =============================================================================
# COHORT MARKSHEETS (CSV)
# =============================================================================

def cohort_marksheets_csv_response(marksheets, filename):
    data = [
        [
            m.rank or '',
            m.student.display_name,
            m.student.email,
            str(m.grand_obtained),
            str(m.grand_total),
            str(m.overall_percentage),
            m.overall_grade,
            m.final_remarks,
        ]
        for m in marksheets
    ]
    headers = ['Rank', 'Student', 'Email', 'Obtained', 'Total', 'Percentage', 'Grade', 'Remarks']
    return generate_csv_response(data, filename, headers)

"""
Patient report PDF.

Renders the patient's details, prescriptions and billing history with
fpdf2.  Only the built-in core fonts are used, so every string goes
through :func:`_latin1` and the rupee sign is written as ``Rs.``.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime

from django.conf import settings
from django.utils import timezone
from fpdf import FPDF
from fpdf.fonts import FontFace

from core.models import Bill, Patient
from core.services.stats import format_inr

logger = logging.getLogger(__name__)


def _latin1(text) -> str:
    return str(text if text is not None else '').encode('latin-1', 'replace').decode('latin-1')


def _money(paise: int) -> str:
    return format_inr(paise).replace('₹', 'Rs. ')


def _day(value) -> str:
    if not value:
        return '-'
    if isinstance(value, datetime) and timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime('%d/%m/%Y')


def report_filename(patient: Patient, day: date | None = None) -> str:
    day = day or timezone.localdate()
    name = re.sub(r'\s+', '_', patient.full_name.strip()) or f'patient_{patient.pk}'
    name = re.sub(r'[^\w.-]', '', name)
    return f'{name}_PatientReport_{day.isoformat()}.pdf'


class PatientReportPDF(FPDF):
    MARGIN = 20
    TEXT_COLOR = (40, 40, 40)
    MUTED_COLOR = (100, 100, 100)
    FOOTER_COLOR = (150, 150, 150)
    INFO_HEAD = (66, 139, 202)
    MEDICINE_HEAD = (92, 184, 92)
    BILL_HEAD = (217, 83, 79)

    def __init__(self, brand: str):
        super().__init__(orientation='P', unit='mm', format='A4')
        self.brand = brand
        self.set_margins(self.MARGIN, self.MARGIN, self.MARGIN)
        self.set_auto_page_break(auto=True, margin=20)

    def footer(self):
        self.set_y(-15)
        self.set_font('Helvetica', '', 8)
        self.set_text_color(*self.FOOTER_COLOR)
        self.cell(0, 5, _latin1(f'{self.brand} - Confidential Patient Information'), align='L')
        self.set_x(-self.MARGIN - 40)
        self.cell(40, 5, f'Page {self.page_no()} of {{nb}}', align='R')

    def heading(self, text: str, size: int = 16):
        self.set_font('Helvetica', 'B', size)
        self.set_text_color(*self.TEXT_COLOR)
        self.cell(0, 10, _latin1(text), new_x='LMARGIN', new_y='NEXT')

    def line_text(self, text: str, size: int = 10, style: str = ''):
        self.set_font('Helvetica', style, size)
        self.set_text_color(*self.TEXT_COLOR)
        self.multi_cell(0, 5, _latin1(text), new_x='LMARGIN', new_y='NEXT')

    def grid(self, head: list[str], rows: list[list[str]], fill, col_widths=None, font_size: int = 9):
        self.set_font('Helvetica', '', font_size)
        self.set_text_color(*self.TEXT_COLOR)
        style = FontFace(emphasis='BOLD', color=(255, 255, 255), fill_color=fill)
        with self.table(col_widths=col_widths, headings_style=style, line_height=6,
                        cell_fill_color=(245, 245, 245), cell_fill_mode='ROWS') as table:
            row = table.row()
            for h in head:
                row.cell(_latin1(h))
            for values in rows:
                row = table.row()
                for v in values:
                    row.cell(_latin1(v))
        self.ln(4)


def build_report(patient: Patient, prescriptions, bills, *, brand: str | None = None) -> bytes:
    brand = brand or settings.CLINIC_BRAND_NAME
    pdf = PatientReportPDF(brand)
    pdf.add_page()

    pdf.set_font('Helvetica', 'B', 20)
    pdf.set_text_color(*pdf.TEXT_COLOR)
    pdf.cell(0, 10, _latin1(f'{brand} - Patient Report'), new_x='LMARGIN', new_y='NEXT')
    pdf.set_font('Helvetica', '', 12)
    pdf.set_text_color(*pdf.MUTED_COLOR)
    pdf.cell(0, 8, f'Generated on: {timezone.localdate():%d/%m/%Y}', new_x='LMARGIN', new_y='NEXT')
    pdf.ln(8)

    pdf.heading('Patient Information')
    info = [
        ['Name', patient.full_name],
        ['Age', f'{patient.age} years' if patient.age is not None else '-'],
        ['Gender', (patient.gender or '-').capitalize()],
        ['Phone', patient.mobile_number or ''],
        ['Email', patient.email or ''],
        ['Address', patient.address or ''],
        ['Emergency Contact', patient.emergency_contact or ''],
        ['Allergies', patient.known_allergies or 'None'],
        ['Medical History', patient.medical_history or 'None'],
        ['Lifestyle', patient.lifestyle_information or 'None'],
    ]
    pdf.grid(['Field', 'Information'], info, pdf.INFO_HEAD, col_widths=(45, 125), font_size=10)

    prescriptions = list(prescriptions)
    if prescriptions:
        pdf.ln(4)
        pdf.heading('Prescriptions')
        for idx, rx in enumerate(prescriptions, start=1):
            pdf.heading(f'Prescription {idx} - {rx.status.upper()}', size=14)
            pdf.line_text(f'Date: {_day(rx.created_at)}')
            pdf.ln(2)
            meds = [[m.get('name', ''), m.get('dosage', ''), m.get('frequency', ''), m.get('duration', '')]
                    for m in rx.medicines or []]
            pdf.grid(['Medicine', 'Dosage', 'Frequency', 'Duration'], meds, pdf.MEDICINE_HEAD)
            if rx.instructions:
                pdf.line_text('Instructions:')
                pdf.line_text(rx.instructions)
            if rx.follow_up_date:
                pdf.line_text(f'Follow-up Date: {_day(rx.follow_up_date)}')
            pdf.ln(6)

    bills = list(bills)
    if bills:
        pdf.ln(4)
        pdf.heading('Billing Information')
        rows = [[
            _day(b.created_at), b.description, _money(b.amount), b.status.upper(),
            b.get_payment_method_display() if b.payment_method else '-', _day(b.paid_at),
        ] for b in bills]
        pdf.grid(['Date', 'Description', 'Amount', 'Status', 'Payment Method', 'Paid Date'], rows,
                 pdf.BILL_HEAD, col_widths=(24, 50, 26, 22, 26, 22))
        total_paid = sum(b.amount for b in bills if b.status == Bill.STATUS_PAID)
        total_pending = sum(b.amount for b in bills if b.status == Bill.STATUS_PENDING)
        pdf.ln(4)
        pdf.line_text('Billing Summary:', size=12, style='B')
        pdf.line_text(f'Total Paid: {_money(total_paid)}')
        pdf.line_text(f'Total Pending: {_money(total_pending)}')

    data = bytes(pdf.output())
    logger.info('patient report rendered patient=%s pages=%s bytes=%s', patient.pk, pdf.page_no(), len(data))
    return data

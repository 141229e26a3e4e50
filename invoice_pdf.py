"""
Invoice PDF rendering
Lays out a stored invoice (header, dates, amounts, payment terms) with reportlab
"""
from datetime import datetime
from decimal import Decimal
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Flowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

import config


class HLine(Flowable):
    def __init__(self, width):
        Flowable.__init__(self)
        self.width = width

    def draw(self):
        self.canv.line(0, 0, self.width, 0)


def _money(value):
    return f"${Decimal(value or '0'):,.2f}"


def _day(value):
    if not value:
        return ''
    return str(datetime.fromisoformat(value).date())


def render_invoice_pdf(invoice, client, items=()):
    """Render ``invoice`` billed to ``client`` and return the PDF as a BytesIO.

    ``items`` are the invoice's line items; recurring invoices have none and
    print their totals only.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, rightMargin=72, leftMargin=72, topMargin=72, bottomMargin=18)
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name='RightAlign', alignment=TA_RIGHT))
    styles.add(ParagraphStyle(name='Center', alignment=TA_CENTER))
    styles.add(ParagraphStyle(name='LeftAlign', alignment=TA_LEFT))
    story = []

    # Header table: business left, client right
    client_contact = f"{client['email'] or ''} | {client['phone'] or ''}".strip(' | ')
    data = [
        [Paragraph(config.BUSINESS_NAME, styles['LeftAlign']), Paragraph(f"Bill To: {client['name']}", styles['RightAlign'])],
        [Paragraph(config.BUSINESS_ADDRESS, styles['LeftAlign']), Paragraph(client['address'] or '', styles['RightAlign'])],
        [Paragraph(f"{config.BUSINESS_PHONE} | {config.BUSINESS_EMAIL}", styles['LeftAlign']), Paragraph(client_contact, styles['RightAlign'])],
    ]
    table = Table(data, colWidths=[300, 200])
    table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('LEFTPADDING', (0, 0), (-1, -1), 0),
        ('RIGHTPADDING', (0, 0), (-1, -1), 0),
    ]))
    story.append(table)
    story.append(Spacer(1, 12))
    story.append(HLine(500))
    story.append(Spacer(1, 12))

    story.append(Paragraph(f"Invoice #{invoice['invoice_number']}", styles['Title']))
    story.append(Spacer(1, 12))

    data = [
        ['Issue Date:', _day(invoice['issue_date']), 'Due Date:', _day(invoice['due_date'])],
        ['Status:', (invoice['status'] or '').replace('_', ' ').title(), '', ''],
    ]
    table = Table(data, colWidths=[100, 100, 100, 100])
    table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (-1, -1), 'Helvetica'),
    ]))
    story.append(table)
    story.append(Spacer(1, 12))
    story.append(HLine(500))
    story.append(Spacer(1, 12))

    if invoice['notes']:
        story.append(Paragraph(invoice['notes'], styles['Normal']))
        story.append(Spacer(1, 12))

    if items:
        idata = [['Description', 'Qty', 'Unit Price', 'Amount']]
        for item in items:
            idata.append([item['description'], item['quantity'], _money(item['unit_price']), _money(item['total'])])
        item_table = Table(idata, colWidths=[250, 60, 90, 100])
        item_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.lightgrey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.black),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ]))
        story.append(item_table)
        story.append(Spacer(1, 12))

    tdata = [
        ['Subtotal:', _money(invoice['subtotal'])],
        ['Tax:', _money(invoice['tax_amount'])],
        ['Total:', _money(invoice['total'])],
    ]
    totals = Table(tdata, colWidths=[400, 100])
    totals.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),
        ('TOPPADDING', (0, -1), (-1, -1), 6),
    ]))
    story.append(totals)
    story.append(Spacer(1, 12))
    story.append(HLine(500))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Payment Terms:", styles['Heading3']))
    story.append(Paragraph(config.PAYMENT_TERMS, styles['Normal']))
    story.append(Paragraph(config.LATE_FEE_POLICY, styles['Normal']))

    doc.build(story)
    buffer.seek(0)
    return buffer

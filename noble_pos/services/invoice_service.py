# ==============================================================================
# INVOICE SERVICE
# ==============================================================================
# A4 tax invoices rendered with reportlab, plus the WhatsApp share message
# and compose URL for a sale.
# ==============================================================================

import io
import re
import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.flowables import HRFlowable

from noble_pos.config import ShopDetails
from noble_pos.logging_config import get_logger
from noble_pos.models.entities import CartLine, Sale, SaleItem, to_text
from noble_pos.services.report_service import parse_timestamp

logger = get_logger(__name__)

# Helvetica has no rupee glyph
CURRENCY = 'Rs.'
FOOTER = 'Thank you for your business! Goods once sold will not be taken back.'
WHATSAPP_SEND_URL = 'https://api.whatsapp.com/send'


def fmt_inr(amount: Any) -> str:
    """
    Whole rupees with Indian digit grouping: 1234567 -> '12,34,567'.
    """
    try:
        value = Decimal(str(amount or 0)).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    except ArithmeticError:
        value = Decimal(0)
    sign = '-' if value < 0 else ''
    digits = str(abs(int(value)))
    if len(digits) <= 3:
        return sign + digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ','.join(groups + [tail])


def format_sale_date(value: Any) -> str:
    """Display date for invoices; pending timestamps show the current time."""
    dt = parse_timestamp(value) or datetime.now(timezone.utc)
    return dt.strftime('%d/%m/%Y %H:%M')


class InvoiceService:
    """
    Service for invoices.

    Responsibilities:
    - PDF invoices for completed sales and for the cart before checkout
    - WhatsApp invoice text and compose URL
    """

    def __init__(self, shop: ShopDetails):
        self.shop = shop
        self.styles = getSampleStyleSheet()
        self._create_styles()

    def _create_styles(self):
        self.shop_style = ParagraphStyle(
            'ShopName',
            parent=self.styles['Heading1'],
            fontSize=20,
            spaceAfter=4,
            fontName='Helvetica-Bold',
        )
        self.title_style = ParagraphStyle(
            'InvoiceTitle',
            parent=self.styles['Heading2'],
            fontSize=16,
            spaceBefore=6,
            spaceAfter=6,
            fontName='Helvetica-Bold',
        )
        self.body_style = ParagraphStyle(
            'InvoiceBody',
            parent=self.styles['Normal'],
            fontSize=10,
            spaceAfter=2,
        )
        self.right_style = ParagraphStyle('InvoiceRight', parent=self.body_style, alignment=2)
        self.total_style = ParagraphStyle(
            'InvoiceTotal',
            parent=self.body_style,
            fontSize=12,
            alignment=2,
            fontName='Helvetica-Bold',
        )
        self.saved_style = ParagraphStyle(
            'InvoiceSaved',
            parent=self.body_style,
            alignment=2,
            textColor=colors.green,
        )
        self.footer_style = ParagraphStyle('InvoiceFooter', parent=self.body_style, fontSize=9)

    # =========================================================================
    # PDF
    # =========================================================================

    def render_pdf(self, sale: Dict[str, Any]) -> Dict[str, Any]:
        """
        Renders a sale as an A4 tax invoice.

        Args:
            sale: Sale document (or a draft from draft_from_cart)

        Returns:
            {'ok': True, 'pdf': bytes, 'filename'} or {'ok': False, 'error'}
        """
        try:
            record = Sale.from_dict(sale)
            buffer = io.BytesIO()
            doc = SimpleDocTemplate(
                buffer,
                pagesize=A4,
                rightMargin=14 * mm,
                leftMargin=14 * mm,
                topMargin=16 * mm,
                bottomMargin=16 * mm,
                title=f"Invoice {record.sale_id}",
            )
            story = []
            story.extend(self._build_header(record))
            story.extend(self._build_items_table(record.items))
            story.extend(self._build_totals(record))
            story.extend(self._build_payment(record))
            story.append(HRFlowable(width='100%', thickness=0.5, color=colors.lightgrey))
            story.append(Spacer(1, 8))
            story.append(Paragraph(FOOTER, self.footer_style))
            doc.build(story)
            pdf_bytes = buffer.getvalue()
            buffer.close()
        except Exception:
            logger.exception("Invoice rendering failed", extra={'sale_id': sale.get('sale_id')})
            return {'ok': False, 'error': 'Failed to generate PDF'}

        return {'ok': True, 'pdf': pdf_bytes, 'filename': f"invoice_{record.sale_id}.pdf"}

    def _build_header(self, sale: Sale) -> List[Any]:
        shop = self.shop
        elements = [
            Paragraph(escape(shop.name), self.shop_style),
            Paragraph(f"GSTIN: {escape(shop.gstin)}", self.body_style),
            Paragraph(f"Address: {escape(shop.address)}", self.body_style),
            Paragraph(f"Phone: {escape(shop.phone)} | Email: {escape(shop.email)}", self.body_style),
            Spacer(1, 8),
            Paragraph('TAX INVOICE', self.title_style),
        ]

        info = Table(
            [[Paragraph(f"Invoice No: {escape(sale.sale_id)}", self.body_style),
              Paragraph(f"Date: {format_sale_date(sale.created_at)}", self.right_style)]],
            colWidths=[91 * mm, 91 * mm],
        )
        info.setStyle(TableStyle([('LEFTPADDING', (0, 0), (-1, -1), 0), ('RIGHTPADDING', (0, 0), (-1, -1), 0)]))
        elements.append(info)
        elements.append(Spacer(1, 8))

        elements.append(Paragraph('<b>Bill To:</b>', self.body_style))
        elements.append(Paragraph(escape(sale.customer.name or '-'), self.body_style))
        if sale.customer.phone:
            elements.append(Paragraph(f"Phone: {escape(sale.customer.phone)}", self.body_style))
        elements.append(Spacer(1, 10))
        return elements

    def _build_items_table(self, items: List[SaleItem]) -> List[Any]:
        data = [['Item', 'Qty', 'Price', 'Amount']]
        for item in items:
            data.append([
                Paragraph(escape(item.name or ''), self.body_style),
                str(item.qty),
                f"{CURRENCY} {fmt_inr(item.price)}",
                f"{CURRENCY} {fmt_inr(item.amount)}",
            ])

        table = Table(data, colWidths=[100 * mm, 20 * mm, 30 * mm, 32 * mm], repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#F0F8FF')),
                    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                    ('FONTSIZE', (0, 0), (-1, -1), 10),
                    ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
                    ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
                    ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
                    ('LINEBELOW', (0, -1), (-1, -1), 0.5, colors.grey),
                ]
            )
        )
        return [table, Spacer(1, 10)]

    def _build_totals(self, sale: Sale) -> List[Any]:
        elements = [Paragraph(f"Subtotal: {CURRENCY} {fmt_inr(sale.subtotal)}", self.right_style)]
        if sale.discount > 0:
            label = f"Discount ({sale.discount_percent:g}%)" if sale.discount_percent else 'Discount'
            elements.append(Paragraph(f"{label}: -{CURRENCY} {fmt_inr(sale.discount)}", self.right_style))
        elements.append(Paragraph(f"Total: {CURRENCY} {fmt_inr(sale.total)}", self.total_style))
        savings = sale.subtotal - sale.total
        if savings > 0:
            elements.append(Paragraph(f"You Saved: {CURRENCY} {fmt_inr(savings)}", self.saved_style))
        elements.append(Spacer(1, 8))
        return elements

    def _build_payment(self, sale: Sale) -> List[Any]:
        payment = sale.payment
        if not payment.method:
            return []
        reference = f" ({escape(payment.reference)})" if payment.reference else ''
        return [
            Paragraph(f"Payment: {escape(payment.method)}{reference}", self.body_style),
            Paragraph(f"Received: {CURRENCY} {fmt_inr(payment.amount_received)}", self.body_style),
            Paragraph(f"Change: {CURRENCY} {fmt_inr(payment.change)}", self.body_style),
            Spacer(1, 8),
        ]

    # =========================================================================
    # DRAFTS
    # =========================================================================

    @staticmethod
    def draft_from_cart(lines: List[Any], customer: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Sale-shaped draft of the current cart, for an invoice before checkout.
        """
        cart = [line if isinstance(line, CartLine) else CartLine.from_dict(line) for line in lines]
        total = round(sum(line.amount for line in cart), 2)
        return {
            'sale_id': f"TEMP-{int(time.time() * 1000)}",
            'created_at': datetime.now(timezone.utc).isoformat(),
            'customer': customer or {},
            'items': [
                {'id': l.id, 'name': l.name, 'barcode': l.barcode, 'price': l.price, 'qty': l.qty}
                for l in cart
            ],
            'subtotal': total,
            'discount': 0,
            'total': total,
            'payment': {},
        }

    # =========================================================================
    # WHATSAPP
    # =========================================================================

    def whatsapp_message(self, sale: Dict[str, Any]) -> str:
        """Invoice summary text for WhatsApp (uses *bold* markup)."""
        record = Sale.from_dict(sale)
        store = self.shop.display_name
        lines = [
            '🧾 *Invoice Summary*',
            '━━━━━━━━━━━━━━━━━━',
            f"*Store:* {store}",
            f"*Date:* {format_sale_date(record.created_at)}",
            f"*Invoice No:* {record.sale_id}",
            '',
            f"*Customer:* {record.customer.display_name}",
        ]
        if record.customer.phone:
            lines.append(f"*Phone:* {record.customer.phone}")
        lines += ['', '*Items:*']
        for idx, item in enumerate(record.items, start=1):
            lines.append(f"{idx}. {item.name} × {item.qty} = ₹{fmt_inr(item.amount)}")

        lines += ['', '━━━━━━━━━━━━━━━━━━']
        if record.discount > 0:
            lines.append(f"Subtotal: ₹{fmt_inr(record.subtotal)}")
            lines.append(f"Discount ({record.discount_percent:g}%): -₹{fmt_inr(record.discount)}")
        lines.append(f"💰 *Total: ₹{fmt_inr(record.total)}*")
        savings = record.subtotal - record.total
        if savings > 0:
            lines.append(f"🎉 *You Saved: ₹{fmt_inr(savings)}*")
        lines.append('')

        if record.payment.method:
            lines.append(f"*Payment Method:* {record.payment.method}")
            if record.payment.reference:
                lines.append(f"*Reference:* {record.payment.reference}")
        lines += [
            '',
            '✅ Thank you for shopping with us!',
            "Need assistance? Reply here, we're happy to help.",
            f"📍 Visit again: {store}",
        ]
        # Empty lines are dropped
        return '\n'.join(line for line in lines if line)

    @staticmethod
    def encode_message(text: str) -> str:
        """
        Percent-encodes like JavaScript's encodeURIComponent, then drops
        emoji variation selectors and uses CRLF line breaks.
        """
        encoded = quote(text, safe="-_.!~*'()")
        return encoded.replace('%EF%B8%8F', '').replace('%0A', '%0D%0A')

    def whatsapp_url(self, phone: str, text: str) -> Dict[str, Any]:
        """
        WhatsApp compose URL for a phone number.

        Returns:
            {'ok': True, 'url'} or {'ok': False, 'error'}
        """
        digits = re.sub(r'\D', '', to_text(phone))
        if not digits:
            return {'ok': False, 'error': 'Please enter a valid phone number.'}
        return {'ok': True, 'url': f"{WHATSAPP_SEND_URL}?phone={digits}&text={self.encode_message(str(text))}"}

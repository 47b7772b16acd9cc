from urllib.parse import unquote

import pytest

from noble_pos.config import ShopDetails
from noble_pos.models.entities import CartLine
from noble_pos.services.invoice_service import InvoiceService, fmt_inr


@pytest.fixture
def invoices():
    return InvoiceService(ShopDetails())


SALE = {
    'sale_id': 'SALE-1717000000000',
    'created_at': '2024-05-29T16:26:40+00:00',
    'customer': {'name': 'Asha', 'phone': '98765 43210'},
    'items': [
        {'id': 'p1', 'name': 'Trail Runner', 'price': 1499, 'qty': 2},
        {'id': 'p2', 'name': 'Flip <Flop> & Co', 'price': 250, 'qty': 1},
    ],
    'subtotal': 3248,
    'discount': 324.8,
    'discount_percent': 10,
    'total': 2923.2,
    'payment': {'method': 'UPI', 'reference': 'asha@okaxis', 'amount_received': 2923.2, 'change': 0},
}


@pytest.mark.parametrize('amount, expected', [
    (0, '0'),
    (None, '0'),
    (999, '999'),
    (1000, '1,000'),
    (100000, '1,00,000'),
    (1234567, '12,34,567'),
    (1499.5, '1,500'),
    (-25000, '-25,000'),
    ('abc', '0'),
])
def test_fmt_inr(amount, expected):
    assert fmt_inr(amount) == expected


def test_render_pdf(invoices):
    result = invoices.render_pdf(SALE)
    assert result['ok']
    assert result['pdf'].startswith(b'%PDF')
    assert result['filename'] == 'invoice_SALE-1717000000000.pdf'


def test_render_pdf_failure_is_reported(invoices):
    result = invoices.render_pdf({'sale_id': 'SALE-1', 'items': 5})
    assert result == {'ok': False, 'error': 'Failed to generate PDF'}


def test_draft_from_cart(invoices):
    lines = [CartLine(id='p1', name='Runner', barcode='1', price=500, qty=2, stock=4)]
    draft = invoices.draft_from_cart(lines, {'name': 'Walk-in', 'phone': ''})
    assert draft['sale_id'].startswith('TEMP-')
    assert draft['total'] == 1000
    assert draft['items'][0] == {'id': 'p1', 'name': 'Runner', 'barcode': '1', 'price': 500, 'qty': 2}
    assert invoices.render_pdf(draft)['ok']


def test_whatsapp_message(invoices):
    text = invoices.whatsapp_message(SALE)
    lines = text.split('\n')

    assert '*Store:* Noble Footwear' in lines
    assert '*Invoice No:* SALE-1717000000000' in lines
    assert '*Customer:* Asha' in lines
    assert '*Phone:* 98765 43210' in lines
    assert '1. Trail Runner × 2 = ₹2,998' in lines
    assert 'Discount (10%): -₹325' in lines
    assert '💰 *Total: ₹2,923*' in lines
    assert '🎉 *You Saved: ₹325*' in lines
    assert '*Reference:* asha@okaxis' in lines
    assert '' not in lines


def test_whatsapp_message_walk_in(invoices):
    text = invoices.whatsapp_message({'sale_id': 'SALE-2', 'items': [], 'total': 0})
    assert '*Customer:* Walk-in Customer' in text
    assert '*Phone:*' not in text
    assert 'You Saved' not in text


def test_whatsapp_url(invoices):
    result = invoices.whatsapp_url('+91 98765-43210', "Hi (Asha)\nTotal: ₹1,000 it's paid")
    assert result['ok']
    url = result['url']
    assert url.startswith('https://api.whatsapp.com/send?phone=919876543210&text=')

    encoded = url.split('&text=', 1)[1]
    assert '%0D%0A' in encoded
    assert "(Asha)" in encoded
    assert "it's" in encoded
    assert '%20' in encoded
    assert '%E2%82%B9' in encoded
    assert unquote(encoded) == "Hi (Asha)\r\nTotal: ₹1,000 it's paid"


def test_whatsapp_url_drops_variation_selectors(invoices):
    url = invoices.whatsapp_url('9000000000', 'ok \u2705\ufe0f')['url']
    assert '%EF%B8%8F' not in url
    assert url.endswith('ok%20%E2%9C%85')


def test_whatsapp_url_requires_phone(invoices):
    assert invoices.whatsapp_url(' - ', 'hello') == {'ok': False, 'error': 'Please enter a valid phone number.'}

import csv
import io

from noble_pos.models.entities import PRODUCTS

NEW_PRODUCT = {
    'barcode': '8901030', 'name': 'City Walker', 'size': '8', 'gender': 'Women',
    'category': 'Casual', 'price': 1200, 'stock': 3,
}


def _register(client, **fields):
    r = client.post('/api/products', json=dict(NEW_PRODUCT, **fields))
    assert r.status_code == 201, r.get_json()
    return r.get_json()['product']


# ==============================================================================
# AUTH
# ==============================================================================

def test_routes_require_sign_in(client):
    for method, path in [('get', '/api/products'), ('get', '/api/cart'), ('post', '/api/checkout'),
                         ('get', '/api/reports/summary'), ('get', '/api/dashboard')]:
        r = getattr(client, method)(path)
        assert r.status_code == 401
        assert r.get_json() == {'ok': False, 'error': 'Sign in required'}


def test_login_logout_and_session(client, admin):
    assert client.get('/api/auth/session').get_json() == {'ok': True, 'user': None}

    r = client.post('/api/auth/login', json={'email': admin['email'], 'password': 'nope'})
    assert r.status_code == 401
    assert r.get_json()['error'] == 'Invalid email or password'

    r = client.post('/api/auth/login', json=admin)
    assert r.status_code == 200
    assert r.get_json()['user']['role'] == 'admin'

    user = client.get('/api/auth/session').get_json()['user']
    assert user['email'] == admin['email']
    assert user['role'] == 'admin'

    client.post('/api/auth/logout')
    assert client.get('/api/auth/session').get_json()['user'] is None
    assert client.get('/api/products').status_code == 401


def test_security_headers(client):
    r = client.get('/api/auth/session')
    assert r.headers['X-Frame-Options'] == 'DENY'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'


def test_unknown_route_is_json(auth_client):
    r = auth_client.get('/api/nothing-here')
    assert r.status_code == 404
    assert r.get_json()['ok'] is False


# ==============================================================================
# INVENTORY
# ==============================================================================

def test_product_crud(auth_client):
    product = _register(auth_client)

    r = auth_client.post('/api/products', json=NEW_PRODUCT)
    assert r.status_code == 409
    assert r.get_json()['error'] == 'Product already registered.'

    r = auth_client.post('/api/products', json=dict(NEW_PRODUCT, barcode='999', size=''))
    assert r.status_code == 400

    r = auth_client.get('/api/products?q=walker')
    assert [p['id'] for p in r.get_json()['products']] == [product['id']]

    r = auth_client.put(f"/api/products/{product['id']}", json={'price': 1100})
    assert r.status_code == 200
    assert r.get_json()['product']['price'] == 1100

    r = auth_client.get('/api/products/barcode/8901030')
    assert r.get_json()['product']['id'] == product['id']
    assert auth_client.get('/api/products/barcode/000').status_code == 404

    r = auth_client.post(f"/api/products/{product['id']}/sold")
    assert r.get_json() == {'ok': True, 'stock': 2}

    assert auth_client.delete(f"/api/products/{product['id']}").status_code == 200
    assert auth_client.delete(f"/api/products/{product['id']}").status_code == 404


def test_mark_sold_out_of_stock(auth_client):
    product = _register(auth_client, stock=0)
    r = auth_client.post(f"/api/products/{product['id']}/sold")
    assert r.status_code == 409
    assert r.get_json()['error'] == 'Product is out of stock.'


# ==============================================================================
# POINT OF SALE
# ==============================================================================

def test_cart_checkout_and_sale_documents(auth_client, container):
    product = _register(auth_client)

    r = auth_client.post('/api/cart/items', json={'product_id': product['id'], 'qty': 1})
    assert r.status_code == 200
    r = auth_client.post('/api/cart/scan', json={'code': '8901030'})
    assert r.get_json()['cart']['item_count'] == 2
    assert auth_client.post('/api/cart/scan', json={'code': 'zzz'}).status_code == 404

    r = auth_client.get('/api/cart/invoice.pdf')
    assert r.status_code == 200
    assert r.mimetype == 'application/pdf'

    r = auth_client.post('/api/checkout', json={
        'customer': {'name': 'Asha', 'phone': '9876543210'},
        'payment': {'method': 'Cash', 'cash_received': 2500},
    })
    assert r.status_code == 201, r.get_json()
    body = r.get_json()
    assert body['total'] == 2400
    assert body['change'] == 100
    sale_id = body['sale_id']

    assert auth_client.get('/api/cart').get_json()['cart']['items'] == []
    assert container.store.get(PRODUCTS, product['id'])['stock'] == 1
    assert auth_client.get('/api/dashboard').get_json()['total_stock'] == 1

    sales = auth_client.get('/api/sales').get_json()['sales']
    assert [s['sale_id'] for s in sales] == [sale_id]
    assert len(auth_client.get('/api/sales?days=7').get_json()['sales']) == 1

    r = auth_client.get(f'/api/sales/{sale_id}/invoice.pdf')
    assert r.status_code == 200
    assert r.data.startswith(b'%PDF')

    r = auth_client.post(f'/api/sales/{sale_id}/whatsapp', json={})
    assert r.status_code == 200
    assert r.get_json()['url'].startswith('https://api.whatsapp.com/send?phone=9876543210&text=')

    r = auth_client.get('/api/reports/export.csv?days=30')
    assert r.mimetype == 'text/csv'
    assert 'sales_report_30days_' in r.headers['Content-Disposition']
    rows = list(csv.reader(io.StringIO(r.get_data(as_text=True))))
    assert rows[1][0] == sale_id
    assert rows[1][4] == 'City Walker x2'

    summary = auth_client.get('/api/reports/summary?days=7').get_json()
    assert summary['totals'] == {'orders': 1, 'revenue': 2400, 'items': 2}
    assert summary['analytics']['payment_methods'][0]['method'] == 'Cash'

    products_view = auth_client.get('/api/reports/products').get_json()
    assert products_view['total_units'] == 2
    assert auth_client.get('/api/reports/stock').get_json()['total_stock'] == 1
    assert auth_client.get('/api/reports/orders?q=asha').get_json()['count'] == 1
    assert auth_client.get('/api/reports/revenue').get_json()['orders'] == 1


def test_checkout_fails_when_stock_changed(auth_client):
    product = _register(auth_client, stock=2)
    auth_client.post('/api/cart/items', json={'product_id': product['id'], 'qty': 2})

    # stock drops after the item went into the cart
    auth_client.put(f"/api/products/{product['id']}", json={'stock': 1})

    r = auth_client.post('/api/checkout', json={'payment': {'method': 'Other'}})
    assert r.status_code == 409
    assert r.get_json()['error'] == 'Insufficient stock for City Walker'
    # the cart is kept so the cashier can adjust it
    assert auth_client.get('/api/cart').get_json()['cart']['item_count'] == 2


def test_checkout_empty_cart_and_bad_payment(auth_client):
    r = auth_client.post('/api/checkout', json={'payment': {'method': 'Cash', 'cash_received': 10}})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Cart is empty'

    product = _register(auth_client)
    auth_client.post('/api/cart/items', json={'product_id': product['id']})
    r = auth_client.post('/api/checkout', json={'payment': {'method': 'Card', 'reference': '12'}})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Enter card last 4 digits or approval code (min 6 chars).'


def test_cart_item_updates(auth_client):
    product = _register(auth_client)
    auth_client.post('/api/cart/items', json={'product_id': product['id'], 'qty': 1})

    r = auth_client.patch(f"/api/cart/items/{product['id']}", json={'qty': 10})
    assert r.get_json()['cart']['items'][0]['qty'] == 3

    r = auth_client.delete(f"/api/cart/items/{product['id']}")
    assert r.get_json()['cart']['items'] == []

    auth_client.post('/api/cart/items', json={'product_id': product['id']})
    assert auth_client.delete('/api/cart').get_json()['cart']['item_count'] == 0

    assert auth_client.post('/api/cart/items', json={'product_id': 'ghost'}).status_code == 404
    assert auth_client.post('/api/cart/items', json={}).status_code == 400


# ==============================================================================
# SALES ADMINISTRATION
# ==============================================================================

def test_edit_and_delete_sale(auth_client, container):
    product = _register(auth_client)
    auth_client.post('/api/cart/items', json={'product_id': product['id']})
    sale_id = auth_client.post('/api/checkout', json={
        'payment': {'method': 'Cash', 'cash_received': 1500},
    }).get_json()['sale_id']

    r = auth_client.put(f'/api/sales/{sale_id}', json={
        'customer_name': 'Ravi', 'customer_phone': '9000000001', 'total': 'n/a',
        'payment_method': 'UPI', 'payment_reference': 'ravi@okicici',
    })
    assert r.status_code == 200
    sale = r.get_json()['sale']
    assert sale['customer'] == {'name': 'Ravi', 'phone': '9000000001'}
    assert sale['total'] == 0
    assert sale['payment']['method'] == 'UPI'
    assert sale['payment']['reference'] == 'ravi@okicici'
    assert sale['payment']['amount_received'] == 1500

    assert auth_client.delete(f'/api/sales/{sale_id}').status_code == 200
    assert auth_client.get('/api/sales').get_json()['sales'] == []
    # stock stays where the sale left it
    assert container.store.get(PRODUCTS, product['id'])['stock'] == 2

    assert auth_client.put('/api/sales/SALE-0', json={}).status_code == 404
    assert auth_client.get('/api/sales/SALE-0/invoice.pdf').status_code == 404


def test_whatsapp_requires_phone(auth_client):
    product = _register(auth_client)
    auth_client.post('/api/cart/items', json={'product_id': product['id']})
    sale_id = auth_client.post('/api/checkout', json={'payment': {'method': 'Other'}}).get_json()['sale_id']

    r = auth_client.post(f'/api/sales/{sale_id}/whatsapp', json={'phone': ''})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Please enter a valid phone number.'


# ==============================================================================
# CLIENT INPUT
# ==============================================================================

def test_numeric_fields_from_clients(auth_client):
    product = _register(auth_client)
    auth_client.post('/api/cart/items', json={'product_id': product['id']})

    r = auth_client.post('/api/checkout', json={
        'customer': {'name': 'Asha', 'phone': 9876543210},
        'payment': {'method': 'Card', 'reference': 4242},
    })
    assert r.status_code == 201, r.get_json()
    sale_id = r.get_json()['sale_id']

    r = auth_client.post(f'/api/sales/{sale_id}/whatsapp', json={})
    assert r.get_json()['url'].startswith('https://api.whatsapp.com/send?phone=9876543210&text=')

    r = auth_client.post(f'/api/sales/{sale_id}/whatsapp', json={'phone': 919000000001, 'text': 12})
    assert r.status_code == 200
    assert r.get_json()['url'] == 'https://api.whatsapp.com/send?phone=919000000001&text=12'

    r = auth_client.put(f'/api/sales/{sale_id}', json={
        'customer_name': 'Asha', 'customer_phone': 9000000001, 'total': 1200,
        'payment_method': 'UPI', 'payment_reference': 12345678,
    })
    assert r.status_code == 200
    sale = r.get_json()['sale']
    assert sale['customer']['phone'] == '9000000001'
    assert sale['payment']['reference'] == '12345678'


def test_malformed_bodies_are_rejected_inline(auth_client):
    product = _register(auth_client)
    auth_client.post('/api/cart/items', json={'product_id': product['id']})

    r = auth_client.post('/api/checkout', json={'customer': 'Asha', 'payment': {'method': 'Other'}})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Invalid customer details.'

    # a JSON array is treated as an empty body
    r = auth_client.post('/api/cart/items', json=[product['id']])
    assert r.status_code == 400
    assert r.get_json()['error'] == 'product_id is required'


def test_report_ranges_out_of_bounds(auth_client):
    for days in ('nan', 'inf', '99999999', '-3', 'abc'):
        assert auth_client.get(f'/api/reports/summary?days={days}').status_code == 200
        assert auth_client.get(f'/api/reports/export.csv?days={days}').status_code == 200
        assert auth_client.get(f'/api/sales?days={days}').status_code == 200

    assert auth_client.get('/api/reports/summary?days=nan').get_json()['days'] == 30
    r = auth_client.get('/api/reports/export.csv?days=99999999')
    assert 'sales_report_3650days_' in r.headers['Content-Disposition']


def test_register_rejects_huge_stock(auth_client):
    r = auth_client.post('/api/products', json=dict(NEW_PRODUCT, stock='1e400'))
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Stock must be a whole number of 0 or more.'

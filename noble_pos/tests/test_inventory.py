import threading

import pytest

from noble_pos.models.entities import PRODUCTS, SOLD_PRODUCTS, to_int, to_number, to_text
from noble_pos.services.inventory_service import product_doc_id


def test_register_product_sets_id_and_timestamp(container):
    result = container.inventory_service.register_product({
        'barcode': ' 8901234 ', 'name': 'Trail Runner', 'size': '9',
        'price': '1,499.50', 'stock': '12', 'gender': 'Men',
    })
    assert result['ok'], result
    product = result['product']
    assert product['id'] == '8901234_Trail Runner'
    assert product['barcode'] == '8901234'
    assert product['price'] == 1499.5
    assert product['stock'] == 12
    assert product['sold'] is False
    assert isinstance(product['createdAt'], str)


def test_register_rejects_duplicate_barcode(container, make_product):
    make_product(barcode='111', name='A')
    result = container.inventory_service.register_product(
        {'barcode': '111', 'name': 'B', 'size': '8', 'price': 10, 'stock': 1}
    )
    assert result == {'ok': False, 'error': 'Product already registered.'}


def test_register_validation(container):
    service = container.inventory_service
    base = {'barcode': '1', 'name': 'A', 'size': '8', 'price': 10, 'stock': 1}

    assert not service.register_product(dict(base, size=''))['ok']
    assert not service.register_product(dict(base, price=-1))['ok']
    assert not service.register_product(dict(base, price='abc'))['ok']
    assert not service.register_product(dict(base, stock='2.5'))['ok']
    assert not service.register_product(dict(base, stock=-3))['ok']
    assert container.product_repo.list() == []


def test_slash_in_name_gives_valid_id(container):
    assert product_doc_id('123', 'Men/Women') == '123_Men-Women'
    result = container.inventory_service.register_product(
        {'barcode': '123', 'name': 'Men/Women', 'size': '7', 'price': 5, 'stock': 1}
    )
    assert result['ok']
    assert result['product']['id'] == '123_Men-Women'


def test_list_products_newest_first_and_search(container):
    store = container.store
    store.set(PRODUCTS, 'old', {'name': 'Loafer', 'barcode': '1', 'gender': 'Men', 'category': 'Formal',
                                'stock': 1, 'createdAt': '2024-01-01T00:00:00+00:00'})
    store.set(PRODUCTS, 'new', {'name': 'Sandal', 'barcode': '2', 'gender': 'Women', 'category': 'Casual',
                                'stock': 1, 'createdAt': '2024-02-01T00:00:00+00:00'})

    service = container.inventory_service
    assert [p['id'] for p in service.list_products()] == ['new', 'old']
    assert [p['id'] for p in service.list_products('FORMAL')] == ['old']
    assert [p['id'] for p in service.list_products('women')] == ['new']
    assert [p['id'] for p in service.list_products('2')] == ['new']


def test_update_product(container, make_product):
    product = make_product(price=500, stock=2)
    result = container.inventory_service.update_product(product['id'], {'price': 650, 'stock': 4})
    assert result['ok'], result
    assert result['product']['price'] == 650
    assert result['product']['stock'] == 4
    assert result['product']['name'] == product['name']


def test_update_rejects_barcode_of_other_product(container, make_product):
    first = make_product(barcode='AAA')
    second = make_product(barcode='BBB')
    result = container.inventory_service.update_product(second['id'], {'barcode': 'AAA'})
    assert not result['ok']
    # keeping its own barcode is fine
    assert container.inventory_service.update_product(first['id'], {'barcode': 'AAA', 'price': 1})['ok']


def test_update_missing_product(container):
    assert container.inventory_service.update_product('nope', {'price': 1}) == {
        'ok': False, 'error': 'Product not found'
    }


def test_delete_product_removes_rollup(container, make_product):
    product = make_product(stock=3)
    assert container.inventory_service.mark_as_sold(product['id'])['ok']
    assert container.store.get(SOLD_PRODUCTS, product['id']) is not None

    assert container.inventory_service.delete_product(product['id']) == {'ok': True}
    assert container.store.get(PRODUCTS, product['id']) is None
    assert container.store.get(SOLD_PRODUCTS, product['id']) is None


def test_mark_as_sold_until_out_of_stock(container, make_product):
    product = make_product(stock=2, price=800)
    service = container.inventory_service

    assert service.mark_as_sold(product['id']) == {'ok': True, 'stock': 1}
    assert container.store.get(PRODUCTS, product['id'])['sold'] is False

    assert service.mark_as_sold(product['id']) == {'ok': True, 'stock': 0}
    stored = container.store.get(PRODUCTS, product['id'])
    assert stored['stock'] == 0
    assert stored['sold'] is True

    rollup = container.store.get(SOLD_PRODUCTS, product['id'])
    assert rollup['units_sold'] == 2
    assert rollup['total_revenue'] == 1600
    assert isinstance(rollup['last_sold_at'], str)

    assert service.mark_as_sold(product['id']) == {'ok': False, 'error': 'Product is out of stock.'}
    assert container.store.get(SOLD_PRODUCTS, product['id'])['units_sold'] == 2


def test_find_by_barcode_and_total_stock(container, make_product):
    make_product(barcode='555', stock=4)
    make_product(barcode='666', stock=6)
    assert container.inventory_service.find_by_barcode(' 555 ')['barcode'] == '555'
    assert container.inventory_service.find_by_barcode('777') is None
    assert container.inventory_service.total_stock() == 10


@pytest.mark.parametrize('field, value, error', [
    ('price', 'inf', 'Price must be a number.'),
    ('price', float('nan'), 'Price must be a number.'),
    ('price', '1e400', 'Price must be a number.'),
    ('stock', '1e400', 'Stock must be a whole number of 0 or more.'),
    ('stock', '-inf', 'Stock must be a whole number of 0 or more.'),
])
def test_register_rejects_non_finite_numbers(container, field, value, error):
    fields = {'barcode': '1', 'name': 'A', 'size': '8', 'price': 10, 'stock': 1}
    fields[field] = value
    assert container.inventory_service.register_product(fields) == {'ok': False, 'error': error}
    assert container.product_repo.list() == []


def test_concurrent_registrations_share_one_barcode(container):
    service = container.inventory_service
    results = []
    start = threading.Barrier(8)

    def register(n):
        start.wait()
        results.append(service.register_product(
            {'barcode': '5550001', 'name': f'Loafer {n}', 'size': '8', 'price': 900, 'stock': 2}
        ))

    threads = [threading.Thread(target=register, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(1 for r in results if r['ok']) == 1
    assert all(r['error'] == 'Product already registered.' for r in results if not r['ok'])
    assert len(container.product_repo.list()) == 1


@pytest.mark.parametrize('value, expected', [
    ('1,200', 1200.0),
    ('nan', 0.0),
    (float('inf'), 0.0),
    ('-1e400', 0.0),
    ('abc', 0.0),
    (None, 0.0),
])
def test_to_number_is_finite(value, expected):
    assert to_number(value) == expected


def test_to_int_and_to_text_accept_client_values():
    assert to_int('nan', 30) == 30
    assert to_int('7.9') == 7
    assert to_text(9876543210) == '9876543210'
    assert to_text(None) == ''
    assert to_text('  Asha ') == 'Asha'

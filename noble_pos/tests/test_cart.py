def test_add_clamps_to_stock_and_merges(app, container, make_product):
    product = make_product(stock=3, price=200)
    cart = container.cart_service

    with app.test_request_context():
        cart.add(product, 2)
        cart.add(product, 5)
        summary = cart.summary()
        assert len(summary['items']) == 1
        assert summary['items'][0]['qty'] == 3
        assert summary['item_count'] == 3
        assert summary['total'] == 600


def test_add_ignores_products_without_stock(app, container, make_product):
    product = make_product(stock=0)
    with app.test_request_context():
        container.cart_service.add(product, 1)
        assert container.cart_service.summary()['items'] == []


def test_update_qty_clamps_and_removes(app, container, make_product):
    product = make_product(stock=4)
    cart = container.cart_service

    with app.test_request_context():
        cart.add(product, 1)
        cart.update_qty(product['id'], 10)
        assert cart.summary()['items'][0]['qty'] == 4

        cart.update_qty(product['id'], -2)
        assert cart.summary()['items'] == []


def test_remove_and_clear(app, container, make_product):
    first = make_product(stock=2)
    second = make_product(stock=2)
    cart = container.cart_service

    with app.test_request_context():
        cart.add(first)
        cart.add(second)
        cart.remove(first['id'])
        assert [line['id'] for line in cart.summary()['items']] == [second['id']]
        cart.clear()
        assert cart.summary() == {'items': [], 'item_count': 0, 'total': 0}


def test_scan_adds_one_unit(app, container, make_product):
    make_product(barcode='8901', stock=5, price=300)
    cart = container.cart_service

    with app.test_request_context():
        assert cart.scan('8901')['ok']
        assert cart.scan('8901')['ok']
        assert cart.summary()['items'][0]['qty'] == 2

        result = cart.scan('0000')
        assert result == {'ok': False, 'error': 'No product found for barcode 0000'}


def test_add_by_unknown_id(app, container):
    with app.test_request_context():
        assert container.cart_service.add_by_id('ghost') == {'ok': False, 'error': 'Product not found'}

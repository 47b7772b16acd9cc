from noble_pos.models.entities import PRODUCTS


def test_figures_follow_product_changes(container, make_product):
    dashboard = container.dashboard_service
    assert dashboard.figures() == {'total_stock': 0, 'product_count': 0, 'out_of_stock': 0, 'low_stock': 0}
    assert dashboard.is_live

    runner = make_product(stock=12)
    make_product(stock=3)
    make_product(stock=0)
    assert dashboard.figures() == {'total_stock': 15, 'product_count': 3, 'out_of_stock': 1, 'low_stock': 1}

    container.inventory_service.mark_as_sold(runner['id'])
    assert dashboard.figures()['total_stock'] == 14

    container.store.delete(PRODUCTS, runner['id'])
    assert dashboard.figures()['product_count'] == 2


def test_stop_unsubscribes(container, make_product):
    dashboard = container.dashboard_service
    dashboard.start()
    dashboard.stop()
    assert not dashboard.is_live

    make_product(stock=4)
    # the next read subscribes again and sees the current state
    assert dashboard.figures()['total_stock'] == 4

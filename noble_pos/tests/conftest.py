import pytest

from noble_pos.app_container import AppContainer
from noble_pos.main import create_app
from noble_pos.repositories.document_store import DocumentStore


ADMIN = {'email': 'admin@noblefootwear.test', 'password': 'secret123'}


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'data_dir': str(tmp_path / 'data'),
        'log_dir': str(tmp_path / 'logs'),
        'secret_key': 'test-secret-key',
        'profiling': False,
    })
    app.config['TESTING'] = True
    yield app
    AppContainer.reset_instance()


@pytest.fixture
def container(app):
    return app.extensions['noble_pos']


@pytest.fixture
def store(tmp_path):
    return DocumentStore(str(tmp_path / 'store.json'))


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def admin(container):
    result = container.auth_service.create_user(ADMIN['email'], ADMIN['password'], 'admin')
    assert result['ok'], result
    return dict(ADMIN)


@pytest.fixture
def auth_client(client, admin):
    r = client.post('/api/auth/login', json=admin)
    assert r.status_code == 200
    return client


@pytest.fixture
def make_product(container):
    """Registers a product through the inventory service and returns it."""
    counter = {'n': 0}

    def _make(**fields):
        counter['n'] += 1
        data = {
            'barcode': f"89000000{counter['n']:04d}",
            'name': f"Runner {counter['n']}",
            'size': '9',
            'gender': 'Men',
            'category': 'Sports',
            'price': 1000,
            'stock': 10,
        }
        data.update(fields)
        result = container.inventory_service.register_product(data)
        assert result['ok'], result
        return result['product']

    return _make

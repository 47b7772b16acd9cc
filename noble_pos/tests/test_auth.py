from noble_pos.models.entities import USERS


def test_create_user_hashes_password(container):
    result = container.auth_service.create_user('Staff@Shop.test', 'hunter22')
    assert result['ok']
    stored = container.store.get(USERS, result['uid'])
    assert stored['email'] == 'staff@shop.test'
    assert stored['role'] == 'staff'
    assert stored['password_hash'] != 'hunter22'


def test_create_user_rejections(container):
    auth = container.auth_service
    assert auth.create_user('owner@shop.test', 'secret123', 'admin')['ok']

    assert not auth.create_user('OWNER@shop.test', 'another1')['ok']
    assert not auth.create_user('not-an-email', 'secret123')['ok']
    assert not auth.create_user('new@shop.test', '123')['ok']
    assert not auth.create_user('new@shop.test', 'secret123', 'superuser')['ok']


def test_sign_in(container, admin):
    auth = container.auth_service
    result = auth.sign_in(admin['email'].upper(), admin['password'])
    assert result['ok']
    assert result['role'] == 'admin'
    assert auth.get_role(result['uid']) == 'admin'


def test_sign_in_failures_share_one_message(container, admin):
    auth = container.auth_service
    expected = {'ok': False, 'error': 'Invalid email or password'}
    assert auth.sign_in(admin['email'], 'wrong') == expected
    assert auth.sign_in('nobody@shop.test', admin['password']) == expected
    assert auth.sign_in('', '') == expected


def test_get_role_unknown_user(container):
    assert container.auth_service.get_role('missing') is None


def test_create_user_cli(app, container):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['create-user', 'cashier@shop.test', 'till1234', '--role', 'staff'])
    assert result.exit_code == 0, result.output
    assert 'cashier@shop.test' in result.output
    assert container.auth_service.sign_in('cashier@shop.test', 'till1234')['ok']

    result = runner.invoke(args=['create-user', 'cashier@shop.test', 'till1234'])
    assert result.exit_code != 0


def test_non_text_credentials(container, admin):
    auth = container.auth_service
    assert auth.sign_in(admin['email'], 123456) == {'ok': False, 'error': 'Invalid email or password'}
    assert auth.sign_in(42, admin['password'])['ok'] is False
    assert auth.create_user('num@shop.test', 12345678) == {
        'ok': False, 'error': 'Password must be at least 6 characters',
    }

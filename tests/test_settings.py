import pytest

from app import create_app, db


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SECRET_KEY': 'test-secret',
    })
    with app.app_context():
        db.create_all()
        yield app


@pytest.fixture
def client(app):
    c = app.test_client()
    c.post('/signup', json={'username': 'owner', 'password': 'pw'})
    c.post('/login', json={'username': 'owner', 'password': 'pw'})
    return c


def test_default_settings_before_first_save(client):
    data = client.get('/settings').get_json()
    assert data['configured'] is False
    assert data['config']['store_name'] == 'Universal Store'
    assert data['config']['categories'] == ['General']


def test_business_types_listing(client):
    types = client.get('/business-types').get_json()['business_types']
    clothing = next(t for t in types if t['id'] == 'clothing')
    assert clothing['uses_sizes'] is True
    assert 'XL' in clothing['default_size_options']


def test_switch_from_clothing_to_food(client):
    resp = client.put('/settings', json={
        'store_name': 'Rani Fashions', 'currency_symbol': '₹', 'business_type': 'clothing',
    })
    assert resp.status_code == 200
    first = resp.get_json()['config']
    assert resp.get_json()['state'] == 'saved'
    assert first['uses_sizes'] is True
    assert 'Jeans' in first['categories']

    # customise, then switch business type
    custom = client.put('/settings', json={'categories': first['categories'] + ['Saree']}).get_json()['config']
    assert custom['categories'][-1] == 'Saree'

    second = client.put('/settings', json={'business_type': 'food'}).get_json()['config']
    assert second['id'] == first['id']
    assert second['business_type'] == 'food'
    assert 'Saree' not in second['categories']
    assert second['categories'][0] == 'Appetizers'
    assert second['uses_sizes'] is False
    assert second['size_options'] == []
    assert [a['name'] for a in second['custom_attributes']] == ['Expiry Date', 'Weight/Volume', 'Brand']
    assert second['store_name'] == 'Rani Fashions'
    assert second['currency_symbol'] == '₹'

    data = client.get('/settings').get_json()
    assert data['configured'] is True
    assert data['config']['id'] == first['id']


def test_duplicate_categories_are_dropped(client):
    resp = client.put('/settings', json={
        'store_name': 'Shop', 'currency_symbol': '$', 'business_type': 'general',
        'categories': ['Toys', 'Toys', ' ', 'Gifts'],
    })
    assert resp.get_json()['config']['categories'] == ['Toys', 'Gifts']


@pytest.mark.parametrize('payload, reason', [
    ({'store_name': '', 'currency_symbol': '$', 'business_type': 'general'}, 'InvalidStoreName'),
    ({'store_name': 'Shop', 'currency_symbol': '', 'business_type': 'general'}, 'InvalidCurrency'),
    ({'store_name': 'Shop', 'currency_symbol': '$', 'business_type': 'garage'}, 'InvalidBusinessType'),
])
def test_invalid_settings_are_rejected(client, payload, reason):
    resp = client.put('/settings', json=payload)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == reason
    assert client.get('/settings').get_json()['configured'] is False


@pytest.mark.parametrize('field, value', [
    ('categories', 'Toys'),
    ('size_options', 'XL'),
    ('custom_attributes', {'name': 'Brand'}),
    ('custom_attributes', ['Brand']),
    ('custom_attributes', [7]),
    ('custom_attributes', [{'name': 'Fabric', 'type': 'select', 'options': 'Silk'}]),
])
def test_malformed_list_fields_are_rejected(client, field, value):
    payload = {'store_name': 'Shop', 'currency_symbol': '$', 'business_type': 'general', field: value}
    resp = client.put('/settings', json=payload)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'InvalidAttributes'
    assert client.get('/settings').get_json()['configured'] is False


def test_form_posted_categories_are_not_split_into_letters(client):
    resp = client.put('/settings', data={
        'store_name': 'Shop', 'currency_symbol': '$', 'business_type': 'general', 'categories': 'Toys',
    })
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'InvalidAttributes'

import pytest

from errors import NotFoundError, ValidationError
from validation import (
    to_int,
    to_number,
    validate_product,
    validate_product_patch,
    validate_purchase,
    validate_sale,
    validate_store_config,
)

GOOD_PRODUCT = {'name': 'Cotton Saree', 'category': 'Saree', 'purchase_price': 1500,
                'selling_price': 2200, 'stock': 5}
PRODUCT_ROW = {'id': 1, 'stock': 3, 'selling_price': 20.0}


def reason_of(fn, *args):
    with pytest.raises(ValidationError) as excinfo:
        fn(*args)
    return excinfo.value.reason


def test_coercion():
    assert to_int('12') == 12
    assert to_int(' 7 ') == 7
    assert to_int(3.0) == 3
    assert to_int(2.5) is None
    assert to_int('x') is None
    assert to_int(True) is None
    assert to_number('2.50') == 2.5
    assert to_number(4) == 4.0
    assert to_number('') is None
    assert to_number(None) is None


def test_valid_product_passes():
    assert validate_product(GOOD_PRODUCT) is None


@pytest.mark.parametrize('change, reason', [
    ({'name': ''}, 'InvalidName'),
    ({'name': '   '}, 'InvalidName'),
    ({'category': ''}, 'InvalidCategory'),
    ({'purchase_price': -1}, 'NegativePrice'),
    ({'selling_price': -0.01}, 'NegativePrice'),
    ({'selling_price': 'free'}, 'InvalidPrice'),
    ({'stock': -1}, 'NegativeStock'),
    ({'stock': 1.5}, 'InvalidStock'),
    ({'stock': 'abc'}, 'InvalidStock'),
    ({'custom_attributes': ['barcode']}, 'InvalidAttributes'),
    ({'custom_attributes': {'Color': {'r': 1}}}, 'InvalidAttributes'),
])
def test_invalid_products(change, reason):
    assert reason_of(validate_product, dict(GOOD_PRODUCT, **change)) == reason


def test_product_attributes_accept_scalars_and_lists():
    validate_product(dict(GOOD_PRODUCT, custom_attributes={'Color': 'Red', 'Sizes': ['S', 'M'], 'Pages': 300}))


def test_product_patch_only_checks_present_fields():
    validate_product_patch({'selling_price': 10})
    validate_product_patch({})
    assert reason_of(validate_product_patch, {'name': ''}) == 'InvalidName'
    assert reason_of(validate_product_patch, {'stock': -2}) == 'NegativeStock'
    assert reason_of(validate_product_patch, {'stock': '5.5'}) == 'InvalidStock'


@pytest.mark.parametrize('payload, reason', [
    ({'supplier': 'Acme', 'quantity': 1, 'purchase_price': 1}, 'MissingProduct'),
    ({'product_id': 1, 'supplier': '', 'quantity': 1, 'purchase_price': 1}, 'InvalidSupplier'),
    ({'product_id': 1, 'supplier': 'Acme', 'quantity': 0, 'purchase_price': 1}, 'InvalidQuantity'),
    ({'product_id': 1, 'supplier': 'Acme', 'quantity': -4, 'purchase_price': 1}, 'InvalidQuantity'),
    ({'product_id': 1, 'supplier': 'Acme', 'quantity': 1, 'purchase_price': -5}, 'NegativePrice'),
])
def test_invalid_purchases(payload, reason):
    assert reason_of(validate_purchase, payload) == reason


def test_valid_purchase_passes():
    validate_purchase({'product_id': 1, 'supplier': 'Acme', 'quantity': '3', 'purchase_price': '0'})


def test_sale_checks():
    validate_sale({'product_id': 1, 'quantity': 3}, PRODUCT_ROW)
    assert reason_of(validate_sale, {'quantity': 1}, PRODUCT_ROW) == 'MissingProduct'
    assert reason_of(validate_sale, {'product_id': 1, 'quantity': 0}, PRODUCT_ROW) == 'InvalidQuantity'
    assert reason_of(validate_sale, {'product_id': 1, 'quantity': 4}, PRODUCT_ROW) == 'InsufficientStock'
    assert reason_of(validate_sale, {'product_id': 1, 'quantity': 1, 'selling_price': -1},
                     PRODUCT_ROW) == 'NegativePrice'


def test_sale_for_missing_product_is_not_found():
    with pytest.raises(NotFoundError) as excinfo:
        validate_sale({'product_id': 99, 'quantity': 1}, None)
    assert excinfo.value.reason == 'MissingProduct'


def test_store_config_checks():
    known = {'clothing', 'food'}
    good = {'store_name': 'Shop', 'currency_symbol': '$', 'business_type': 'food',
            'custom_attributes': [{'name': 'Brand', 'type': 'text'}]}
    validate_store_config(good, known)
    assert reason_of(validate_store_config, dict(good, store_name=' '), known) == 'InvalidStoreName'
    assert reason_of(validate_store_config, dict(good, currency_symbol=''), known) == 'InvalidCurrency'
    assert reason_of(validate_store_config, dict(good, business_type='garage'), known) == 'InvalidBusinessType'
    assert reason_of(validate_store_config, dict(good, custom_attributes=[{'name': 'X', 'type': 'date'}]),
                     known) == 'InvalidAttributes'


@pytest.mark.parametrize('attribute', [
    {'name': 'Fabric', 'type': 'select'},
    {'name': 'Fabric', 'type': 'select', 'options': 'Silk'},
    {'name': 'Fabric', 'type': 'select', 'options': ['Silk', ' ']},
    'Fabric',
])
def test_store_config_select_attributes_need_options(attribute):
    record = {'store_name': 'Shop', 'currency_symbol': '$', 'business_type': 'clothing',
              'custom_attributes': [attribute]}
    assert reason_of(validate_store_config, record, {'clothing'}) == 'InvalidAttributes'


def test_store_config_select_attribute_with_options():
    validate_store_config({'store_name': 'Shop', 'currency_symbol': '$', 'business_type': 'clothing',
                           'custom_attributes': [{'name': 'Fabric', 'type': 'select', 'options': ['Silk']}]},
                          {'clothing'})

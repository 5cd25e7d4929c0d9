"""
STORE CONFIGURATION TESTS
Business type templates, draft editing, upsert persistence and the settings form states.
"""

from datetime import datetime, timedelta

import pytest

from errors import GatewayError
from gateway import FixtureGateway
from store_config import (
    ConfigDraft,
    SettingsForm,
    business_types,
    effective_config,
    get_business_type,
    is_configured,
    load_store_config,
    save_store_config,
    EDITING,
    FAILED,
    LOADING,
    SAVED,
)

OWNER = 1


def clothing_draft():
    draft = ConfigDraft({'store_name': 'Rani Fashions', 'currency_symbol': '₹', 'business_type': ''})
    draft.select_business_type('clothing')
    return draft


# ==================== TEMPLATES ====================

def test_business_types():
    ids = [bt.id for bt in business_types()]
    assert ids == ['clothing', 'food', 'electronics', 'books', 'pharmacy', 'general']
    assert get_business_type('clothing').uses_sizes is True
    assert get_business_type('nope') is None


def test_switching_business_type_replaces_template_fields():
    draft = clothing_draft()
    draft.add_category('Saree')
    draft.add_size('Kids')
    draft.add_attribute('Barcode')

    assert draft.select_business_type('food') is True
    food = get_business_type('food')
    assert draft.business_type == 'food'
    assert draft.categories == list(food.default_categories)
    assert 'Saree' not in draft.categories
    assert draft.uses_sizes is False
    assert draft.size_options == []
    assert [a['name'] for a in draft.custom_attributes] == ['Expiry Date', 'Weight/Volume', 'Brand']
    # untouched by the switch
    assert draft.store_name == 'Rani Fashions'
    assert draft.currency_symbol == '₹'


def test_templates_are_not_mutated_by_edits():
    draft = clothing_draft()
    draft.add_attribute_option('Color', 'Maroon')
    draft.add_category('Saree')
    clothing = get_business_type('clothing')
    assert 'Saree' not in clothing.default_categories
    assert 'Maroon' not in clothing.suggested_attributes[0]['options']


def test_unknown_business_type_is_ignored():
    draft = clothing_draft()
    assert draft.select_business_type('garage') is False
    assert draft.business_type == 'clothing'


# ==================== LIST EDITS ====================

def test_category_add_and_remove():
    draft = clothing_draft()
    assert draft.add_category(' Saree ') is True
    assert draft.categories[-1] == 'Saree'
    assert draft.add_category('Saree') is False
    assert draft.add_category('   ') is False
    assert draft.categories.count('Saree') == 1
    assert draft.remove_category('saree') is False
    assert draft.remove_category('Saree') is True
    assert 'Saree' not in draft.categories


def test_size_and_attribute_edits():
    draft = clothing_draft()
    assert draft.add_size('M') is False
    assert draft.add_size('4XL') is True
    assert draft.remove_size('XS') is True

    assert draft.add_attribute('Fabric', 'select', ['Silk', 'Silk', ' Cotton ']) is True
    fabric = draft.custom_attributes[-1]
    assert fabric == {'name': 'Fabric', 'type': 'select', 'options': ['Silk', 'Cotton']}
    assert draft.add_attribute('Fabric', 'text') is False
    assert draft.add_attribute_option('Fabric', 'Linen') is True
    assert draft.add_attribute_option('Fabric', 'Linen') is False
    assert draft.remove_attribute_option('Fabric', 'Silk') is True
    assert fabric['options'] == ['Cotton', 'Linen']
    assert draft.remove_attribute('Fabric') is True
    assert draft.remove_attribute('Fabric') is False


def test_size_options_dropped_when_sizes_unused():
    draft = clothing_draft()
    draft.set(uses_sizes=False)
    assert draft.size_options  # kept while editing
    assert draft.to_record()['size_options'] == []


# ==================== PERSISTENCE ====================

def test_save_inserts_then_updates_same_row():
    gateway = FixtureGateway()
    first = save_store_config(gateway, OWNER, clothing_draft().to_record())
    assert first['id'] is not None

    record = clothing_draft().to_record()
    record['store_name'] = 'Rani Fashions & Sons'
    second = save_store_config(gateway, OWNER, record)

    assert second['id'] == first['id']
    assert second['store_name'] == 'Rani Fashions & Sons'
    assert len(gateway.list('store_config', {'owner_id': OWNER})) == 1

    # a different owner gets their own row
    other = save_store_config(gateway, 2, clothing_draft().to_record())
    assert other['id'] != first['id']


def test_effective_config_defaults():
    assert effective_config(None)['store_name'] == 'Universal Store'
    assert is_configured(None) is False
    gateway = FixtureGateway()
    row = save_store_config(gateway, OWNER, clothing_draft().to_record())
    assert effective_config(load_store_config(gateway, OWNER)) == row
    assert is_configured(row) is True


# ==================== SETTINGS FORM ====================

class BrokenGateway(FixtureGateway):
    def insert(self, table, record):
        raise GatewayError('backend unavailable')


def test_settings_form_happy_path():
    form = SettingsForm(FixtureGateway(), OWNER)
    assert form.state == LOADING
    draft = form.load()
    assert form.state == EDITING
    draft.set(store_name='Rani Fashions', currency_symbol='₹')
    draft.select_business_type('clothing')

    t0 = datetime(2026, 5, 1, 12, 0, 0)
    saved = form.submit(now=t0)
    assert form.state == SAVED
    assert saved['business_type'] == 'clothing'
    assert form.refresh(t0 + timedelta(seconds=1)) == SAVED
    assert form.refresh(t0 + timedelta(seconds=3)) == EDITING


def test_settings_form_change_after_save_returns_to_editing():
    form = SettingsForm(FixtureGateway(), OWNER)
    draft = form.load()
    draft.set(store_name='Shop', currency_symbol='$')
    form.submit()
    assert form.state == SAVED
    draft.add_category('Extra')
    assert form.state == EDITING


def test_settings_form_failure_keeps_error_until_next_submit():
    form = SettingsForm(BrokenGateway(), OWNER)
    draft = form.load()
    draft.set(store_name='Shop', currency_symbol='$')

    assert form.submit() is None
    assert form.state == FAILED
    assert isinstance(form.error, GatewayError)

    draft.add_category('Extra')
    assert form.state == EDITING
    assert form.error is not None  # still shown

    draft.set(store_name='')
    form.submit()
    assert form.state == FAILED
    assert form.error.reason == 'InvalidStoreName'


def test_settings_form_must_load_before_submit():
    with pytest.raises(RuntimeError):
        SettingsForm(FixtureGateway(), OWNER).submit()

"""Tests for unit planning from design documents and AI output."""

import pytest

from designsynth.constants import TargetFramework, UnitKind
from designsynth.services.synthesis.artifacts import GeneratedFile
from designsynth.services.synthesis.config import SynthesisOptions
from designsynth.services.synthesis.design_document import DesignDocumentValidator
from designsynth.services.synthesis.unit_planner import UnitPlanner


def document(raw):
    outcome = DesignDocumentValidator().validate(raw)
    assert outcome.valid, outcome.error_message
    return outcome.document


def single_page(*components, name='Home'):
    return {
        'assets': [],
        'styles': [],
        'pages': [{'name': name, 'frames': [{'component': {'type': 'wrapper', 'components': list(components)}}]}],
    }


def labelled(kind, text):
    return {'type': kind, 'components': [{'type': 'textnode', 'content': text}]}


@pytest.mark.unit
class TestUnitPlanner:
    """Units derived from pages, widgets and AI files."""

    def setup_method(self):
        self.planner = UnitPlanner()
        self.options = SynthesisOptions(name='shop')

    def names(self, raw, options=None, ai_files=()):
        return [u.name for u in self.planner.plan(document(raw), options or self.options, ai_files)]

    def test_sample_design(self, sample_design):
        """Editor ids are not used as labels; the button falls back to its category."""
        units = self.planner.plan(document(sample_design), self.options)

        assert [u.name for u in units] == ['home-page', 'button', 'app-routes']
        page, widget, routes = units
        assert page.is_page and page.label == 'Home'
        assert page.directory == 'components/home-page'
        assert widget.category == 'button'
        assert routes.kind == UnitKind.ROUTE

    def test_buttons_named_after_their_text(self, shop_design):
        assert self.names(shop_design) == [
            'home-page', 'buy-now-button', 'add-to-cart-button', 'checkout-button', 'app-routes',
        ]

    def test_identical_widgets_share_one_component(self):
        raw = single_page(labelled('button', 'Buy now'), labelled('button', 'Buy now'))
        assert self.names(raw) == ['home-page', 'buy-now-button', 'app-routes']

    def test_label_attributes(self):
        raw = single_page(
            {'type': 'input', 'attributes': {'id': 'i3x', 'placeholder': 'Email address'}},
            {'type': 'button', 'attributes': {'title': 'Open menu'}},
        )
        assert self.names(raw)[1:3] == ['email-address-input', 'open-menu-button']

    def test_long_labels_are_truncated(self):
        raw = single_page(labelled('button', 'Add this item to my cart'))
        assert self.names(raw)[1] == 'add-this-item-to-button'

    def test_markup_stripped_from_labels(self):
        raw = single_page({'type': 'button', 'content': '<b>Save</b> draft'})
        assert self.names(raw)[1] == 'save-draft-button'

    def test_label_already_ending_with_category(self):
        raw = single_page(labelled('button', 'Submit button'))
        assert self.names(raw)[1] == 'submit-button'

    def test_rich_types(self):
        """Known rich widgets are planned; unknown editor types are not."""
        raw = single_page({'type': 'table'}, {'type': 'mystery-widget'}, {'type': 'image'})
        assert self.names(raw) == ['home-page', 'table', 'app-routes']

    def test_duplicate_page_names(self):
        raw = single_page(name='Home')
        raw['pages'].append({'name': 'Home', 'frames': [{'component': {'type': 'wrapper'}}]})
        assert self.names(raw) == ['home-page', 'home-page-2', 'app-routes']

    def test_options_disable_components_and_routing(self, shop_design):
        options = SynthesisOptions(name='shop', generate_components=False, include_routing=False)
        assert self.names(shop_design, options) == ['home-page']

    def test_ai_units_keep_their_directory(self, sample_design):
        ai_files = [
            GeneratedFile('src/app/components/product-list', 'product-list.component.ts', ''),
            GeneratedFile('src/app/components/product-list', 'product-list.component.html', ''),
            GeneratedFile('services', 'cart.service.ts', ''),
            GeneratedFile('src/app', 'app.component.ts', ''),
            GeneratedFile('pages/home', 'home-page.component.ts', ''),
        ]

        units = {u.name: u for u in self.planner.plan(document(sample_design), self.options, ai_files)}

        assert set(units) == {'home-page', 'button', 'product-list', 'cart', 'app-routes'}
        assert units['home-page'].directory == 'pages/home'
        assert units['home-page'].is_page
        assert units['product-list'].kind == UnitKind.COMPONENT
        assert units['product-list'].directory == 'components/product-list'
        assert units['cart'].kind == UnitKind.SERVICE
        assert units['cart'].directory == 'services'

    def test_flutter_has_no_units(self, shop_design):
        options = SynthesisOptions(name='shop', target=TargetFramework.FLUTTER)
        assert self.names(shop_design, options) == []

"""Tests for naming helpers."""

import pytest

from designsynth.utils.naming import (
    archive_file_name,
    pluralize,
    sanitize_project_name,
    singularize,
    split_words,
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_snake_case,
)


@pytest.mark.unit
class TestCaseConversion:
    @pytest.mark.parametrize('name, words', [
        ('productList', ['product', 'list']),
        ('ProductList', ['product', 'list']),
        ('product_list', ['product', 'list']),
        ('Add to cart!', ['add', 'to', 'cart']),
        ('HTTPClient', ['http', 'client']),
        ('page2Header', ['page2', 'header']),
        ('', []),
    ])
    def test_split_words(self, name, words):
        assert split_words(name) == words

    def test_conversions(self):
        assert to_kebab_case('Product List') == 'product-list'
        assert to_pascal_case('product-list') == 'ProductList'
        assert to_camel_case('product-list') == 'productList'
        assert to_snake_case('ProductList') == 'product_list'


@pytest.mark.unit
class TestPlurals:
    @pytest.mark.parametrize('word, plural', [
        ('product', 'products'),
        ('category', 'categories'),
        ('day', 'days'),
        ('box', 'boxes'),
        ('match', 'matches'),
        ('person', 'people'),
        ('Order', 'Orders'),
    ])
    def test_pluralize(self, word, plural):
        assert pluralize(word) == plural

    @pytest.mark.parametrize('plural, word', [
        ('products', 'product'),
        ('categories', 'category'),
        ('boxes', 'box'),
        ('people', 'person'),
        ('status', 'status'),
        ('address', 'address'),
    ])
    def test_singularize(self, plural, word):
        assert singularize(plural) == word


@pytest.mark.unit
class TestProjectNames:
    @pytest.mark.parametrize('name, expected', [
        ('My Shop 2', 'my_shop_2'),
        ('1st app', 'app_1st_app'),
        ('Shop-Admin!', 'shopadmin'),
        ('', 'app'),
        ('***', 'app'),
    ])
    def test_sanitize_project_name(self, name, expected):
        assert sanitize_project_name(name) == expected

    @pytest.mark.parametrize('name, expected', [
        ('My Shop', 'my-shop.zip'),
        ('shop_admin', 'shop_admin.zip'),
        ('', 'project.zip'),
    ])
    def test_archive_file_name(self, name, expected):
        assert archive_file_name(name) == expected

"""Tests for data model inference and deduplication."""

import pytest

from designsynth.constants import FieldType
from designsynth.services.synthesis.artifacts import GeneratedFile, InferredModel
from designsynth.services.synthesis.model_inference import (
    FormBindingRule,
    IterationRule,
    ModelInferenceEngine,
    classify_literal,
    deduplicate_models,
    parse_model_declarations,
    resolve_field_type,
)

LIST_TEMPLATE = """<div class="items">
  <div *ngFor="let item of items" class="item">
    <span>{{ item.name }}</span>
    <span>{{ item.price | currency }}</span>
    <input type="checkbox" [checked]="item.active" />
  </div>
</div>
"""

FORM_SOURCE = """import { Component, inject } from '@angular/core';
import { FormBuilder, Validators } from '@angular/forms';

@Component({ selector: 'app-product-form', templateUrl: './product-form.component.html' })
export class ProductFormComponent {
  private fb = inject(FormBuilder);

  productForm = this.fb.group({
    name: ['', Validators.required],
    price: [0, [Validators.min(0)]],
    inStock: [true],
  });
}
"""


def html(name, content):
    return GeneratedFile(f"components/{name}", f"{name}.component.html", content)


def ts(name, content):
    return GeneratedFile(f"components/{name}", f"{name}.component.ts", content)


@pytest.mark.unit
class TestInferUnit:
    """Model recovery from one unit's files."""

    def setup_method(self):
        self.engine = ModelInferenceEngine()

    def test_list_rendering_fields(self):
        """Iteration bindings give the model name, accesses give the fields."""
        models = self.engine.infer_unit('item-list', [html('item-list', LIST_TEMPLATE)])

        assert len(models) == 1
        model = models[0]
        assert model.name == 'Item'
        assert model.fields == {
            'id': FieldType.NUMBER,
            'price': FieldType.NUMBER,
            'name': FieldType.STRING,
            'active': FieldType.BOOLEAN,
        }
        assert model.field_names[0] == 'id'
        assert model.source_unit == 'item-list'

    def test_reactive_form_initializers(self):
        """Form control initializers type the fields of the form's model."""
        models = self.engine.infer_unit('product-form', [ts('product-form', FORM_SOURCE)])

        assert [m.name for m in models] == ['Product']
        assert models[0].fields == {
            'id': FieldType.NUMBER,
            'name': FieldType.STRING,
            'price': FieldType.NUMBER,
            'inStock': FieldType.BOOLEAN,
        }

    def test_ng_model_bindings_with_input_types(self):
        template = """<form>
  <input type="text" [(ngModel)]="task.title" name="title" />
  <input type="date" [(ngModel)]="task.due" name="due" />
  <input type="number" [(ngModel)]="task.priority" name="priority" />
</form>
"""
        models = self.engine.infer_unit('task-editor', [html('task-editor', template)])

        assert models[0].name == 'Task'
        assert models[0].fields['title'] == FieldType.STRING
        assert models[0].fields['due'] == FieldType.DATE
        assert models[0].fields['priority'] == FieldType.NUMBER

    def test_selected_prefix_is_stripped(self):
        template = '<h2>{{ selectedOrder.reference }}</h2><p>{{ selectedOrder.total | number }}</p>'
        models = self.engine.infer_unit('order-detail', [html('order-detail', template)])
        assert models[0].name == 'Order'
        assert models[0].fields['total'] == FieldType.NUMBER

    def test_requires_two_non_id_fields(self):
        """A single observed field is not enough to contribute a model."""
        template = '<li *ngFor="let tag of tags">{{ tag.label }}</li>'
        assert self.engine.infer_unit('tag-list', [html('tag-list', template)]) == []

    def test_ignores_form_state_members(self):
        template = '<button [disabled]="form.invalid">Save</button><p *ngIf="items.length">{{ user.name }}</p>'
        assert self.engine.infer_unit('user-card', [html('user-card', template)]) == []

    def test_stylesheets_are_not_scanned(self):
        css = GeneratedFile('components/a', 'a.component.css', '.item.name { color: red; }')
        assert self.engine.infer_unit('a', [css]) == []


@pytest.mark.unit
class TestRules:
    """Rules are independent and can be exercised on their own."""

    def test_iteration_rule(self):
        bindings = IterationRule().scan('@for (order of orders$ | async; track order.id) {}')
        assert bindings[0].variable == 'order'
        assert bindings[0].collection == 'orders$'

    def test_form_control_name_uses_enclosing_group(self):
        template = '<form [formGroup]="customerForm"><input type="email" formControlName="email"></form>'
        accesses = FormBindingRule().scan(template)
        assert accesses[0].root == 'customerForm'
        assert accesses[0].field == 'email'
        assert accesses[0].hint == FieldType.STRING


@pytest.mark.unit
class TestFieldTypes:
    @pytest.mark.parametrize('name, expected', [
        ('dueDate', FieldType.DATE),
        ('timestamp', FieldType.DATE),
        ('price', FieldType.NUMBER),
        ('totalAmount', FieldType.NUMBER),
        ('quantity', FieldType.NUMBER),
        ('userId', FieldType.NUMBER),
        ('item_count', FieldType.NUMBER),
        ('active', FieldType.BOOLEAN),
        ('isVisible', FieldType.BOOLEAN),
        ('hasStock', FieldType.BOOLEAN),
        ('width', FieldType.STRING),
        ('title', FieldType.STRING),
    ])
    def test_naming_overrides(self, name, expected):
        assert resolve_field_type(name) == expected

    def test_structural_hint_wins(self):
        assert resolve_field_type('name', FieldType.NUMBER) == FieldType.NUMBER

    @pytest.mark.parametrize('literal, expected', [
        ("''", FieldType.STRING),
        ('42', FieldType.NUMBER),
        ('-1.5', FieldType.NUMBER),
        ('false', FieldType.BOOLEAN),
        ('new Date()', FieldType.DATE),
        ('[]', FieldType.OPAQUE),
        ('null', None),
    ])
    def test_classify_literal(self, literal, expected):
        assert classify_literal(literal) == expected


@pytest.mark.unit
class TestExplicitModels:
    def test_parse_interface(self):
        source = """export interface Order {
  id: number;
  customer: string;
  total: number;
  placedAt: Date;
  notes?: string | null;
  lines: OrderLine[];
}
"""
        models = parse_model_declarations(source, source_unit='models/order.model.ts')

        assert len(models) == 1
        order = models[0]
        assert order.explicit is True
        assert order.fields == {
            'id': FieldType.NUMBER,
            'customer': FieldType.STRING,
            'total': FieldType.NUMBER,
            'placedAt': FieldType.DATE,
            'notes': FieldType.STRING,
            'lines': FieldType.OPAQUE,
        }

    def test_parse_explicit_only_reads_model_files(self):
        engine = ModelInferenceEngine()
        files = [
            GeneratedFile('models', 'customer.model.ts', 'export interface Customer { id: number; name: string; }'),
            GeneratedFile('services', 'api.service.ts', 'export class ApiService { base: string; }'),
        ]
        models = engine.parse_explicit(files)
        assert [m.name for m in models] == ['Customer']


@pytest.mark.unit
class TestDeduplication:
    """Similarity-based collapse of near-identical models."""

    def test_similarity_is_dice_coefficient(self):
        small = InferredModel('Product', {'name': FieldType.STRING, 'price': FieldType.NUMBER})
        large = InferredModel('ProductItem', {
            'name': FieldType.STRING, 'price': FieldType.NUMBER, 'description': FieldType.STRING,
        })

        assert small.similarity(large) == pytest.approx(6 / 7)
        assert large.similarity(small) == small.similarity(large)
        assert small.similarity(small) == 1.0

    def test_collapse_prefers_name_without_suffix(self):
        """The suffixed name loses even though its model has more fields."""
        item = InferredModel('ProductItem', {
            'name': FieldType.STRING, 'price': FieldType.NUMBER, 'description': FieldType.STRING,
        })
        product = InferredModel('Product', {'name': FieldType.STRING, 'price': FieldType.NUMBER})

        result = deduplicate_models([item, product])

        assert len(result) == 1
        assert result[0].name == 'Product'
        assert set(result[0].fields) == {'id', 'name', 'price', 'description'}

    def test_collapse_prefers_shorter_name(self):
        entry = InferredModel('BookEntry', {'title': FieldType.STRING, 'author': FieldType.STRING, 'isbn': FieldType.STRING})
        book = InferredModel('Book', {'title': FieldType.STRING, 'author': FieldType.STRING})
        result = deduplicate_models([entry, book])
        assert [m.name for m in result] == ['Book']

    def test_explicit_model_wins(self):
        declared = InferredModel('ProductDto', {'name': FieldType.STRING, 'price': FieldType.NUMBER}, explicit=True)
        inferred = InferredModel('Product', {'name': FieldType.STRING, 'price': FieldType.NUMBER})
        result = deduplicate_models([inferred, declared])
        assert result[0].name == 'ProductDto'
        assert result[0].explicit is True

    def test_dissimilar_models_survive(self):
        product = InferredModel('Product', {'name': FieldType.STRING, 'price': FieldType.NUMBER})
        author = InferredModel('Author', {'fullName': FieldType.STRING, 'bio': FieldType.STRING, 'born': FieldType.DATE})
        result = deduplicate_models([product, author])
        assert [m.name for m in result] == ['Product', 'Author']

    def test_same_name_always_collapses(self):
        first = InferredModel('Order', {'total': FieldType.NUMBER, 'status': FieldType.STRING})
        second = InferredModel('Order', {'customer': FieldType.STRING, 'placedAt': FieldType.DATE, 'note': FieldType.STRING})
        result = deduplicate_models([first, second])
        assert len(result) == 1
        assert set(result[0].fields) == {'id', 'total', 'status', 'customer', 'placedAt', 'note'}

    def test_inputs_are_not_mutated(self):
        item = InferredModel('ProductItem', {'name': FieldType.STRING, 'price': FieldType.NUMBER, 'sku': FieldType.STRING})
        product = InferredModel('Product', {'name': FieldType.STRING, 'price': FieldType.NUMBER})
        deduplicate_models([item, product])
        assert 'sku' not in product.fields

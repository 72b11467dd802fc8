"""Tests for CRUD data service synthesis."""

import pytest

from designsynth.constants import FieldType
from designsynth.services.synthesis.artifacts import GeneratedFile, InferredModel
from designsynth.services.synthesis.crud_synthesizer import CrudServiceSynthesizer, detect_operations
from designsynth.services.synthesis.source_scanner import SourceOutline

PARTIAL_SERVICE = """import { Injectable } from '@angular/core';
import { HttpClient } from '@angular/common/http';
import { Observable } from 'rxjs';
import { Product } from '../models/product.model';

@Injectable({ providedIn: 'root' })
export class ProductService {
  constructor(private http: HttpClient) {}

  getProducts(): Observable<Product[]> {
    return this.http.get<Product[]>('/api/products');
  }
}
"""

LOCAL_MODEL_SERVICE = """import { Injectable } from '@angular/core';
import { HttpClient } from '@angular/common/http';

export interface Product {
  name: string;
  price: number;
}

@Injectable({ providedIn: 'root' })
export class ProductService {
  constructor(private http: HttpClient) {}
}
"""

COMPLETE_SERVICE = """import { Injectable } from '@angular/core';

@Injectable({ providedIn: 'root' })
export class ProductService {
  findAll() { return []; }
  findById(id: number) { return null; }
  save(product: unknown) { return product; }
}
"""


def product_model():
    return InferredModel('Product', {'name': FieldType.STRING, 'price': FieldType.NUMBER, 'added': FieldType.DATE})


@pytest.mark.unit
class TestCrudServiceSynthesizer:
    """Service creation, completion and preservation."""

    def setup_method(self):
        self.synthesizer = CrudServiceSynthesizer(api_root='/api')

    def test_creates_service_and_model(self):
        result = self.synthesizer.synthesize([product_model()], {})

        assert result.created == ['Product']
        assert set(result.files) == {'services/product.service.ts', 'models/product.model.ts'}

        service = result.files['services/product.service.ts'].filecontent
        assert "private readonly baseUrl = '/api/products';" in service
        assert "import { Product } from '../models/product.model';" in service
        outline = SourceOutline(service)
        assert outline.cls.name == 'ProductService'
        assert outline.member_names() == [
            'http', 'baseUrl', 'getAll', 'getById', 'create', 'update', 'delete', 'search', 'handleError',
        ]

    def test_error_handler_distinguishes_transport_failures(self):
        service = self.synthesizer.synthesize([product_model()], {}).files['services/product.service.ts'].filecontent
        assert 'error.error instanceof ErrorEvent' in service
        assert 'throwError(' in service

    def test_model_file_declares_fields(self):
        model = self.synthesizer.synthesize([product_model()], {}).files['models/product.model.ts'].filecontent
        assert 'export interface Product {' in model
        assert '  id: number;' in model
        assert '  name: string;' in model
        assert '  price: number;' in model
        assert '  added: Date | string;' in model

    def test_explicit_model_is_not_redeclared(self):
        order = InferredModel('Order', {'total': FieldType.NUMBER, 'status': FieldType.STRING},
                              explicit=True, source_unit='models/order.model.ts')

        result = self.synthesizer.synthesize([order], {})

        assert set(result.files) == {'services/order.service.ts'}
        assert "import { Order } from '../models/order.model';" in result.files['services/order.service.ts'].filecontent

    def test_preserves_service_with_three_operations(self):
        """Aliases count towards the canonical operations."""
        files = {'services/product.service.ts': GeneratedFile('services', 'product.service.ts', COMPLETE_SERVICE)}

        result = self.synthesizer.synthesize([product_model()], files)

        assert result.preserved == ['Product']
        assert result.files == {}

    def test_completes_partial_service(self):
        files = {'services/product.service.ts': GeneratedFile('services', 'product.service.ts', PARTIAL_SERVICE)}

        result = self.synthesizer.synthesize([product_model()], files)

        assert result.augmented == ['Product']
        content = result.files['services/product.service.ts'].filecontent
        outline = SourceOutline(content)
        names = outline.member_names()
        # Existing members are kept as they are
        assert names[:2] == ['constructor', 'getProducts']
        assert 'getAll' not in names
        for operation in ('getById', 'create', 'update', 'delete', 'handleError', 'baseUrl'):
            assert operation in names
        assert 'this.http.delete<void>' in content
        assert {'HttpErrorResponse', 'throwError', 'catchError'} <= outline.imported_names
        assert "import { HttpClient, HttpErrorResponse } from '@angular/common/http';" in content

    def test_locally_declared_model_is_not_imported(self):
        files = {'services/product.service.ts': GeneratedFile('services', 'product.service.ts', LOCAL_MODEL_SERVICE)}

        result = self.synthesizer.synthesize([product_model()], files)

        assert result.augmented == ['Product']
        content = result.files['services/product.service.ts'].filecontent
        assert 'Product' not in SourceOutline(content).imported_names
        assert content.count('export interface Product ') == 1
        assert 'getAll' in SourceOutline(content).member_names()

    def test_finds_existing_service_by_class_name(self):
        files = {'data/product-api.service.ts': GeneratedFile('data', 'product-api.service.ts', PARTIAL_SERVICE)}
        result = self.synthesizer.synthesize([product_model()], files)
        assert result.augmented == ['Product']
        assert list(result.files) == ['data/product-api.service.ts']

    def test_injects_http_client_when_missing(self):
        bare = "import { Injectable } from '@angular/core';\n\n@Injectable({ providedIn: 'root' })\nexport class ProductService {\n}\n"
        files = {'services/product.service.ts': GeneratedFile('services', 'product.service.ts', bare)}

        content = self.synthesizer.synthesize([product_model()], files).files['services/product.service.ts'].filecontent

        assert 'private http = inject(HttpClient);' in content
        assert "import { Injectable, inject } from '@angular/core';" in content

    @pytest.mark.parametrize('name, expected', [
        ('Product', '/api/products'),
        ('Category', '/api/categories'),
        ('OrderLine', '/api/orderlines'),
        ('Person', '/api/people'),
    ])
    def test_base_path(self, name, expected):
        assert self.synthesizer.base_path(InferredModel(name)) == expected

    @pytest.mark.parametrize('api_root, expected', [
        ('v1/', '/v1/products'),
        ('/shop/api', '/shop/api/products'),
        ('', '/products'),
    ])
    def test_api_root_is_normalized(self, api_root, expected):
        synthesizer = CrudServiceSynthesizer(api_root=api_root)
        assert synthesizer.base_path(InferredModel('Product')) == expected


@pytest.mark.unit
class TestDetectOperations:
    def test_canonical_names(self):
        assert detect_operations(['getAll', 'getById', 'create', 'update', 'delete'], 'Product') == [
            'getAll', 'getById', 'create', 'update', 'delete',
        ]

    def test_aliases(self):
        assert detect_operations(['findAll', 'findById', 'save', 'ngOnInit'], 'Product') == ['getAll', 'getById', 'create']

    def test_model_qualified_names(self):
        assert detect_operations(['getProducts', 'getProduct', 'addProduct', 'removeProduct'], 'Product') == [
            'getAll', 'getById', 'create', 'delete',
        ]

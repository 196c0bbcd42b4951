"""
Tests for the sales endpoints.

Tests:
- Product catalog CRUD, SKU uniqueness and price filters
- Quote numbering, line item pricing and totals
- Line item edits restricted to draft quotes
- Quote expiry task and the sales summary
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework import status

from apps.rbac.models import AuditLog
from apps.sales.models import Product, Quote
from apps.sales.services import SalesService, line_total
from apps.sales.tasks import expire_quotes


@pytest.fixture
def product(tenant):
    return Product.objects.create(
        tenant=tenant, name='Consulting day', sku='CONS-1', price=Decimal('100.00'), tax_rate=Decimal('19.00'),
        is_service=True,
    )


def _valid_until(days=30):
    return (timezone.localdate() + timedelta(days=days)).isoformat()


@pytest.mark.django_db
class TestProducts:

    def test_create_and_audit(self, owner_client, tenant):
        response = owner_client.post('/v1/sales/products', {
            'name': 'Widget', 'sku': 'W-1', 'price': '12.50', 'currency': 'usd',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['currency'] == 'USD'
        assert response.data['price'] == '12.50'
        product = Product.objects.get(id=response.data['id'])
        assert product.tenant_id == tenant.id
        assert AuditLog.objects.filter(action='product_created', target_id=product.id).exists()

    def test_duplicate_sku_rejected(self, owner_client, product):
        response = owner_client.post('/v1/sales/products', {
            'name': 'Copy', 'sku': 'CONS-1', 'price': '1.00',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'sku' in response.data['details']['fields']

    def test_same_sku_in_other_tenant_is_allowed(self, owner_client, other_tenant):
        Product.objects.create(tenant=other_tenant, name='Theirs', sku='X-1', price=Decimal('1'))

        response = owner_client.post('/v1/sales/products', {
            'name': 'Ours', 'sku': 'X-1', 'price': '2.00',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED

    def test_negative_price_rejected(self, owner_client):
        response = owner_client.post('/v1/sales/products', {'name': 'Bad', 'price': '-1'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_price_filters_and_ordering(self, owner_client, tenant):
        for name, price in (('Cheap', '5'), ('Mid', '50'), ('Premium', '500')):
            Product.objects.create(tenant=tenant, name=name, price=Decimal(price))

        response = owner_client.get('/v1/sales/products?min_price=10&max_price=600&ordering=-price')

        assert [p['name'] for p in response.data['results']] == ['Premium', 'Mid']

    @pytest.mark.parametrize('query', ['min_price=abc', 'max_price=1e', 'min_price=--1'])
    def test_malformed_filters_rejected(self, owner_client, query):
        response = owner_client.get(f'/v1/sales/products?{query}')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_viewer_cannot_create(self, viewer_client):
        response = viewer_client.post('/v1/sales/products', {'name': 'X', 'price': '1'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_viewer_can_list(self, viewer_client, product):
        response = viewer_client.get('/v1/sales/products')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1


@pytest.mark.django_db
class TestQuotes:

    def _create(self, client, product, **extra):
        payload = {
            'title': 'Rollout',
            'valid_until': _valid_until(),
            'discount_amount': '20.00',
            'items': [
                {'product': str(product.id), 'quantity': '2', 'discount': '10.00'},
                {'description': 'Setup fee', 'unit_price': '50.00'},
            ],
        }
        payload.update(extra)
        return client.post('/v1/sales/quotes', payload, format='json')

    def test_create_prices_line_items(self, owner_client, owner, product):
        response = self._create(owner_client, product)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.data
        assert data['quote_number'] == f'Q{timezone.localdate().year}-0001'
        assert data['status'] == 'DRAFT'
        assert [item['total_price'] for item in data['items']] == ['190.00', '50.00']
        assert data['items'][0]['description'] == 'Consulting day'
        assert data['items'][0]['tax_rate'] == '19.00'
        assert data['subtotal'] == '240.00'
        assert data['tax_amount'] == '36.10'
        assert data['total_amount'] == '256.10'
        assert data['created_by']['email'] == owner.user.email
        assert AuditLog.objects.filter(action='quote_created', target_id=data['id']).exists()

    def test_numbers_increase_per_tenant(self, owner_client, product, other_tenant):
        SalesService.create_quote(
            other_tenant, title='Theirs', valid_until=timezone.localdate(),
            items=[{'description': 'x', 'unit_price': Decimal('1')}],
        )
        self._create(owner_client, product)

        response = self._create(owner_client, product)

        assert response.data['quote_number'] == f'Q{timezone.localdate().year}-0002'

    def test_items_required(self, owner_client, product):
        response = self._create(owner_client, product, items=[])

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'items' in response.data['details']['fields']

    def test_custom_line_needs_price_and_description(self, owner_client, product):
        response = self._create(owner_client, product, items=[{'quantity': '1'}])

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Quote.objects.count() == 0

    def test_line_discount_cannot_exceed_amount(self, owner_client, product):
        response = self._create(owner_client, product, items=[
            {'description': 'Tiny', 'unit_price': '5.00', 'discount': '6.00'},
        ])

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']['field'] == 'items'
        assert Quote.objects.count() == 0

    def test_product_of_other_tenant_rejected(self, owner_client, other_tenant):
        foreign = Product.objects.create(tenant=other_tenant, name='Theirs', price=Decimal('1'))

        response = self._create(owner_client, foreign)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_replace_items_recalculates(self, owner_client, product):
        quote_id = self._create(owner_client, product).data['id']

        response = owner_client.patch(f'/v1/sales/quotes/{quote_id}', {
            'discount_amount': '0',
            'items': [{'description': 'Licence', 'unit_price': '10.00', 'quantity': '3'}],
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data['items']) == 1
        assert response.data['subtotal'] == '30.00'
        assert response.data['total_amount'] == '30.00'
        log = AuditLog.objects.get(action='quote_updated', target_id=quote_id)
        assert log.diff == {'discount_amount': {'old': 20.0, 'new': 0.0}}

    def test_items_locked_after_sending(self, owner_client, product):
        quote_id = self._create(owner_client, product).data['id']
        owner_client.patch(f'/v1/sales/quotes/{quote_id}', {'status': 'SENT'}, format='json')

        response = owner_client.patch(f'/v1/sales/quotes/{quote_id}', {
            'items': [{'description': 'Extra', 'unit_price': '1.00'}],
        }, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert Quote.objects.get(id=quote_id).line_items.count() == 2

    def test_status_filter_and_search(self, owner_client, product):
        self._create(owner_client, product, title='Alpha')
        self._create(owner_client, product, title='Beta', status='SENT')

        response = owner_client.get('/v1/sales/quotes?status=SENT')
        assert [q['title'] for q in response.data['results']] == ['Beta']

        response = owner_client.get('/v1/sales/quotes?search=alpha')
        assert [q['title'] for q in response.data['results']] == ['Alpha']

        response = owner_client.get('/v1/sales/quotes?valid_from=not-a-date')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_other_tenant_quote_is_404(self, owner_client, other_tenant):
        quote = SalesService.create_quote(
            other_tenant, title='Theirs', valid_until=timezone.localdate(),
            items=[{'description': 'x', 'unit_price': Decimal('1')}],
        )

        assert owner_client.get(f'/v1/sales/quotes/{quote.id}').status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestSalesServices:

    @pytest.mark.parametrize('quantity,unit_price,discount,expected', [
        ('1', '10', '0', Decimal('10.00')),
        ('2.5', '3.33', '0', Decimal('8.33')),
        ('3', '10', '5', Decimal('25.00')),
    ])
    def test_line_total(self, quantity, unit_price, discount, expected):
        assert line_total(Decimal(quantity), Decimal(unit_price), Decimal(discount)) == expected

    def test_expire_quotes_task(self, tenant):
        yesterday = timezone.localdate() - timedelta(days=1)
        items = [{'description': 'x', 'unit_price': Decimal('1')}]
        sent = SalesService.create_quote(tenant, title='Sent', valid_until=yesterday, status='SENT', items=items)
        draft = SalesService.create_quote(tenant, title='Draft', valid_until=yesterday, items=items)
        current = SalesService.create_quote(
            tenant, title='Current', valid_until=timezone.localdate(), status='SENT', items=items
        )

        assert expire_quotes() == 1

        sent.refresh_from_db()
        draft.refresh_from_db()
        current.refresh_from_db()
        assert (sent.status, draft.status, current.status) == ('EXPIRED', 'DRAFT', 'SENT')

    def test_summary(self, owner_client, tenant, product):
        items = [{'product': product}]
        SalesService.create_quote(tenant, title='A', valid_until=timezone.localdate(), status='ACCEPTED', items=items)
        SalesService.create_quote(tenant, title='B', valid_until=timezone.localdate(), status='REJECTED', items=items)
        SalesService.create_quote(tenant, title='C', valid_until=timezone.localdate(), items=items)

        response = owner_client.get('/v1/sales/summary')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['quotes_by_status']['ACCEPTED'] == {'count': 1, 'total': '119.00'}
        assert response.data['quotes_by_status']['DRAFT']['count'] == 1
        assert response.data['acceptance_rate'] == 50.0
        assert response.data['products'] == {'total': 1, 'active': 1}

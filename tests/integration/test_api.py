"""
Integration tests for the JSON API.
"""

import pytest
from decimal import Decimal

from pdv.models import Product


@pytest.fixture(scope='function')
def coffee_id(coffee):
    return coffee.id


def _draft_json(product_id, qty='3', unit_price='10.00', **extra):
    data = {
        'seller_id': 'V01',
        'seller_name': 'Vendedor Um',
        'lines': [{
            'product_id': product_id,
            'product_name': 'Café 500g',
            'qty': qty,
            'unit_price': unit_price,
            'original_price': '10.00',
        }],
    }
    data.update(extra)
    return data


class TestCartEndpoints:
    """Tests for the stateless cart endpoints."""

    def test_totals(self, client, coffee_id):
        response = client.post('/api/cart/totals', json={'draft': _draft_json(coffee_id)})

        assert response.status_code == 200
        assert response.get_json()['totals'] == {'subtotal': '30.00', 'total': '30.00'}

    def test_add_item(self, client, coffee_id):
        response = client.post('/api/cart/items', json={
            'draft': {'seller_id': 'V01', 'lines': []},
            'product_id': coffee_id,
            'qty': 2,
        })

        body = response.get_json()
        assert response.status_code == 200
        assert body['draft']['lines'][0]['product_code'] == 'CAF-500'
        assert body['totals']['subtotal'] == '20.00'

    def test_edit_item_returns_notice(self, client, coffee_id):
        response = client.put('/api/cart/items/0', json={'draft': _draft_json(coffee_id), 'unit_price': '5'})

        body = response.get_json()
        assert response.status_code == 200
        assert body['draft']['lines'][0]['unit_price'] == '9.4000'
        assert body['notice']

    def test_edit_blocked_by_global_discount(self, client, coffee_id):
        response = client.put('/api/cart/items/0', json={
            'draft': _draft_json(coffee_id, discount='1.00'),
            'unit_price': '9.50',
        })

        assert response.status_code == 403
        assert response.get_json()['error'] == 'PolicyError'

    def test_missing_draft(self, client):
        response = client.post('/api/cart/totals', json={})

        assert response.status_code == 400
        assert response.get_json()['status'] == 'error'

    def test_non_json_body(self, client):
        response = client.post('/api/cart/totals', data='x', content_type='text/plain')
        assert response.status_code == 400

    @pytest.mark.parametrize('qty', ['NaN', 'Infinity', 'sNaN'])
    def test_non_finite_qty_rejected(self, client, coffee_id, qty):
        response = client.post('/api/cart/totals', json={'draft': _draft_json(coffee_id, qty=qty)})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'


class TestDiscountEndpoints:

    def test_propose_from_target_total(self, client, coffee_id):
        response = client.post('/api/discount/propose', json={'draft': _draft_json(coffee_id), 'target_total': '27.00'})

        assert response.status_code == 200
        assert response.get_json()['proposal'] == {
            'amount': '3.00', 'percent': '10.0000', 'target_total': '27.00', 'requires_token': True,
        }

    def test_confirm_without_token_is_forbidden(self, client, coffee_id):
        response = client.post('/api/discount/confirm', json={'draft': _draft_json(coffee_id), 'amount': '3.00'})

        body = response.get_json()
        assert response.status_code == 403
        assert body['error'] == 'PolicyError'
        assert body['threshold'] == '6'

    def test_confirm_with_token(self, client, coffee_id):
        response = client.post('/api/discount/confirm', json={
            'draft': _draft_json(coffee_id, installments=4), 'amount': '3.00', 'token': 'mgr1',
        })

        body = response.get_json()
        assert response.status_code == 200
        assert body['draft']['discount'] == '3.00'
        assert body['draft']['installments'] == 1
        assert body['totals']['total'] == '27.00'


class TestPaymentEndpoint:

    def test_mismatch_returns_signed_difference(self, client, coffee_id):
        response = client.post('/api/payments/validate', json={
            'draft': _draft_json(coffee_id, payments={'cash': '20.00'}),
        })

        body = response.get_json()
        assert response.status_code == 422
        assert body['difference'] == '10.00'

    def test_autofill(self, client, coffee_id):
        response = client.post('/api/payments/validate', json={
            'draft': _draft_json(coffee_id, payments={'cash': '20.00'}),
            'autofill': 'pix',
        })

        body = response.get_json()
        assert response.status_code == 200
        assert body['draft']['payments']['pix'] == '10.00'
        assert body['remaining'] == '0.00'

    def test_infinite_payment_rejected(self, client, coffee_id):
        response = client.post('/api/payments/validate', json={
            'draft': _draft_json(coffee_id, payments={'cash': 'Infinity'}),
        })

        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'


class TestSalesEndpoints:
    """Tests for the order lifecycle over HTTP."""

    def _submit(self, client, product_id, **kwargs):
        draft = _draft_json(product_id, payments={'cash': '30.00'})
        response = client.post('/api/sales', json=dict({'draft': draft}, **kwargs))
        return response

    def test_full_lifecycle(self, client, session, coffee_id):
        response = self._submit(client, coffee_id)
        assert response.status_code == 201
        sale_id = response.get_json()['sale']['id']

        queue = client.get('/api/sales/pending').get_json()['sales']
        assert [s['id'] for s in queue] == [sale_id]

        response = client.post(f'/api/sales/{sale_id}/complete', json={'cashier_id': 'C01', 'cashier_name': 'Caixa'})
        assert response.status_code == 200
        assert response.get_json()['sale']['status'] == 'COMPLETED'
        assert session.get(Product, coffee_id).stock == Decimal('17')

        response = client.post(f'/api/sales/{sale_id}/complete', json={'cashier_id': 'C01'})
        assert response.status_code == 409
        assert response.get_json()['error'] == 'AlreadySettledError'

        response = client.post(f'/api/sales/{sale_id}/cancel', json={})
        assert response.status_code == 200
        assert response.get_json()['sale']['status'] == 'CANCELLED'
        session.expire_all()
        assert session.get(Product, coffee_id).stock == Decimal('20')

    def test_budget_not_in_queue(self, client, coffee_id):
        self._submit(client, coffee_id, as_budget=True)

        assert client.get('/api/sales/pending').get_json()['sales'] == []
        budgets = client.get('/api/sales?status=budget').get_json()['sales']
        assert len(budgets) == 1

    def test_reopen_and_overwrite(self, client, coffee_id):
        sale_id = self._submit(client, coffee_id, as_budget=True).get_json()['sale']['id']

        draft = client.get(f'/api/sales/{sale_id}/draft').get_json()['draft']
        assert draft['sale_id'] == sale_id

        response = client.post('/api/sales', json={'draft': draft})
        assert response.status_code == 200
        assert response.get_json()['sale']['status'] == 'PENDING'
        assert len(client.get('/api/sales').get_json()['sales']) == 1

    def test_lowered_original_price_is_forbidden(self, client, coffee_id):
        draft = _draft_json(coffee_id, unit_price='5.00', payments={'cash': '15.00'})
        draft['lines'][0]['original_price'] = '5.00'

        response = client.post('/api/sales', json={'draft': draft})

        assert response.status_code == 403
        assert response.get_json()['error'] == 'PolicyError'
        assert client.get('/api/sales').get_json()['sales'] == []

    def test_missing_original_price_rejected(self, client, coffee_id):
        draft = _draft_json(coffee_id, unit_price='1.00', payments={'cash': '3.00'})
        del draft['lines'][0]['original_price']

        response = client.post('/api/sales', json={'draft': draft})

        assert response.status_code == 400
        assert client.get('/api/sales').get_json()['sales'] == []

    def test_complete_requires_cashier(self, client, coffee_id):
        sale_id = self._submit(client, coffee_id).get_json()['sale']['id']

        response = client.post(f'/api/sales/{sale_id}/complete', json={})
        assert response.status_code == 400

    def test_insufficient_stock(self, client, session, coffee_id):
        sale_id = client.post('/api/sales', json={
            'draft': _draft_json(coffee_id, qty='25', payments={'cash': '250.00'}),
        }).get_json()['sale']['id']

        response = client.post(f'/api/sales/{sale_id}/complete', json={'cashier_id': 'C01'})

        assert response.status_code == 409
        assert response.get_json()['error'] == 'InsufficientStockError'
        assert session.get(Product, coffee_id).stock == Decimal('20')

    def test_unknown_sale(self, client):
        response = client.get('/api/sales/999')
        assert response.status_code == 404
        assert response.get_json()['error'] == 'NotFoundError'

    def test_invalid_status_filter(self, client):
        assert client.get('/api/sales?status=paid').status_code == 400


class TestReadEndpoints:

    def test_product_search(self, client, coffee_id, sugar):
        response = client.get('/api/products?q=caf')

        products = response.get_json()['products']
        assert response.status_code == 200
        assert [p['id'] for p in products] == [coffee_id]
        assert products[0]['price'] == '10.00'

    def test_dashboard(self, client, coffee_id):
        sale_id = client.post('/api/sales', json={
            'draft': _draft_json(coffee_id, payments={'cash': '30.00'}),
        }).get_json()['sale']['id']
        client.post(f'/api/sales/{sale_id}/complete', json={'cashier_id': 'C01'})

        response = client.get('/api/dashboard')

        data = response.get_json()['dashboard']
        assert response.status_code == 200
        assert Decimal(data['revenue']) == Decimal('30')
        assert data['completed_count'] == 1
        assert data['pending_count'] == 0
        assert data['recent_sales'][0]['id'] == sale_id

    def test_metrics(self, client, coffee_id):
        self._submit_and_cancel(client, coffee_id)

        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'pdv_sales_events_total' in response.data
        assert b'http_requests_total' in response.data

    def _submit_and_cancel(self, client, product_id):
        sale_id = client.post('/api/sales', json={
            'draft': _draft_json(product_id, payments={'cash': '30.00'}),
        }).get_json()['sale']['id']
        client.post(f'/api/sales/{sale_id}/cancel', json={})

    def test_unknown_route(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json()['status'] == 'error'

# Overview: Pytest coverage for the HTTP surface; auth gating, status codes and JSON shapes.

"""
API Route Tests

Exercises the blueprints through the Flask test client: authentication,
tenant derivation from the session, and the error-to-status mapping.
"""

import pytest

from conftest import PASSWORD, auth_headers, get_auth_token


class TestSystemAndAuth:

    def test_health(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json['status'] == 'healthy'
        assert response.json['checks']['database']['status'] == 'healthy'

    def test_signup_then_login(self, client, db_session):
        response = client.post('/api/auth/signup', json={
            'email': 'new@shop.test', 'password': PASSWORD, 'business_name': 'New Shop',
        })
        assert response.status_code == 201
        assert response.json['tenant_id']

        response = client.post('/api/auth/login', json={'email': 'new@shop.test', 'password': PASSWORD},
                               headers={'X-Country': 'SA'})
        assert response.status_code == 200
        assert len(response.json['token']) == 64
        assert response.json['expires_at'].endswith('Z')
        assert response.json['user']['login_count'] == 1
        assert 'password_hash' not in response.json['user']

    def test_duplicate_signup(self, client, tenant):
        response = client.post('/api/auth/signup', json={
            'email': 'owner@acme.test', 'password': PASSWORD, 'business_name': 'Again',
        })
        assert response.status_code == 409

    def test_login_missing_fields(self, client, db_session):
        response = client.post('/api/auth/login', json={'email': 'owner@acme.test'})
        assert response.status_code == 400

    def test_login_wrong_password(self, client, tenant):
        response = client.post('/api/auth/login', json={'email': 'owner@acme.test', 'password': 'nope-nope'})
        assert response.status_code == 401
        assert response.json == {'error': 'Invalid email or password.'}

    @pytest.mark.parametrize('path', [
        '/api/orders', '/api/products?q=a', '/api/warehouses', '/api/metrics/year/2026',
    ])
    def test_missing_token(self, client, db_session, path):
        response = client.get(path)
        assert response.status_code == 401
        assert response.json == {'error': 'Authentication required'}

    def test_invalid_token(self, client, db_session):
        response = client.get('/api/orders', headers=auth_headers('deadbeef'))
        assert response.status_code == 401
        assert response.json == {'error': 'Invalid or expired token'}

    def test_logout_revokes_token(self, client, headers):
        assert client.post('/api/auth/logout', headers=headers).status_code == 200
        assert client.get('/api/orders', headers=headers).status_code == 401


class TestOrderRoutes:

    def test_order_lifecycle(self, client, headers, make_product, owner):
        product = make_product(quantity=5)

        response = client.post('/api/orders', headers=headers, json={
            'lines': [{'product_id': product.id, 'qty': 2}],
            'created_at': '2026-05-14T09:30:00Z',
        })
        assert response.status_code == 201
        order = response.json['order']
        assert order['totals']['profit_cents'] == 1200
        assert order['status'] == 'OK'

        response = client.patch(f"/api/orders/{order['id']}/status", headers=headers, json={
            'new_status': 'Returned', 'reverse_metrics': True, 'restock_items': True,
        })
        assert response.status_code == 200
        history = response.json['order']['status_history']
        assert history[-1]['user_id'] == owner.id

        response = client.get('/api/orders?month=2026-05', headers=headers)
        assert [o['id'] for o in response.json['orders']] == [order['id']]

        response = client.get('/api/metrics/year/2026', headers=headers)
        assert response.json['totals']['order_count'] == 0

    def test_tenant_comes_from_session(self, client, headers, other_tenant, make_product):
        foreign = make_product(tenant_id=other_tenant.id)
        response = client.post('/api/orders', headers=headers, json={
            'tenant_id': other_tenant.id,
            'lines': [{'product_id': foreign.id, 'qty': 1}],
        })
        assert response.status_code == 404

    def test_insufficient_stock_is_409_with_details(self, client, headers, make_product):
        product = make_product(quantity=1)
        response = client.post('/api/orders', headers=headers, json={'lines': [{'product_id': product.id, 'qty': 4}]})
        assert response.status_code == 409
        assert response.json['details']['available'] == 1
        assert response.json['details']['requested_quantity'] == 4

    def test_empty_order_is_400(self, client, headers):
        response = client.post('/api/orders', headers=headers, json={'lines': []})
        assert response.status_code == 400
        assert 'error' in response.json

    def test_unknown_order_is_404(self, client, headers):
        assert client.get('/api/orders/4242', headers=headers).status_code == 404

    def test_unexpected_error_is_500(self, client, headers, monkeypatch, caplog):
        from fulfillment.services import order_service

        def fail(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(order_service, "get_order", fail)
        response = client.get('/api/orders/1', headers=headers)
        assert response.status_code == 500
        assert response.json == {'error': 'Internal server error'}
        assert 'Failed to load order' in caplog.text

    def test_weekly_metrics_route(self, client, headers):
        response = client.get('/api/metrics/month/2026/2/weekly', headers=headers)
        assert response.status_code == 200
        assert response.json == {'month': '2026-02', 'weeks': {}}
        assert client.get('/api/metrics/month/2026/13/weekly', headers=headers).status_code == 400


class TestCatalogueRoutes:

    def test_product_create_search_and_adjust(self, client, headers):
        response = client.post('/api/products', headers=headers, json={
            'name': 'Desk Lamp', 'sell_price_cents': 4500, 'stock_price_cents': 2000, 'quantity': 3,
        })
        assert response.status_code == 201
        product = response.json['product']

        response = client.get('/api/products?q=Desk', headers=headers)
        assert [p['id'] for p in response.json['products']] == [product['id']]

        response = client.post(f"/api/products/{product['id']}/stock-adjust", headers=headers, json={'change_qty': -5})
        assert response.status_code == 409

        response = client.get('/api/products/list?limit=500', headers=headers)
        assert response.status_code == 400

    def test_unexpected_product_error_is_500(self, client, headers, monkeypatch):
        from fulfillment.services import product_service

        def fail(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(product_service, "get_product", fail)
        response = client.get('/api/products/1', headers=headers)
        assert response.status_code == 500
        assert response.json == {'error': 'Internal server error'}

    def test_warehouse_limit_is_403(self, client, headers, db_session, tenant):
        from fulfillment.models import TenantSettings

        settings = db_session.query(TenantSettings).filter_by(tenant_id=tenant.id).one()
        settings.max_warehouses = 1
        db_session.commit()

        response = client.post('/api/warehouses', headers=headers, json={'name': 'Second'})
        assert response.status_code == 403
        assert 'Warehouse limit reached' in response.json['error']

    def test_packaging_presets(self, client, headers):
        response = client.get('/api/packaging', headers=headers)
        assert response.status_code == 200
        assert len(response.json['presets']) == 3

    def test_cors_headers_for_allowed_origin(self, client, db_session):
        response = client.get('/api/health', headers={'Origin': 'http://localhost:5173'})
        assert response.headers['Access-Control-Allow-Origin'] == 'http://localhost:5173'
        response = client.get('/api/health', headers={'Origin': 'http://evil.test'})
        assert 'Access-Control-Allow-Origin' not in response.headers


def test_second_login_gets_distinct_token(client, tenant):
    first = get_auth_token(client, 'owner@acme.test', PASSWORD)
    second = get_auth_token(client, 'owner@acme.test', PASSWORD)
    assert first and second and first != second

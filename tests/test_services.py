import pytest
import json


@pytest.mark.services
class TestServiceCatalog:
    """Service catalog CRUD."""

    def test_create_service(self, client, auth_headers):
        response = client.post(
            '/api/services',
            json={'name': 'Gutter Clean', 'price': '89.5', 'duration': 90},
            headers=auth_headers
        )

        assert response.status_code == 201
        service = json.loads(response.data)['service']
        assert service['price'] == 89.5
        assert service['duration'] == 90

    @pytest.mark.parametrize('price', [None, 0, -5, 'abc'])
    def test_create_service_rejects_bad_price(self, client, auth_headers, price):
        response = client.post(
            '/api/services',
            json={'name': 'Gutter Clean', 'price': price},
            headers=auth_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)['errors'][0]['field'] == 'price'

    @pytest.mark.parametrize('payload, field', [
        ({'name': 123, 'price': 5}, 'name'),
        ({'name': 'Gutter Clean', 'price': 5, 'category': ['outdoor']}, 'category'),
    ])
    def test_create_service_rejects_non_text(self, client, auth_headers, payload, field):
        response = client.post('/api/services', json=payload, headers=auth_headers)

        assert response.status_code == 400
        assert json.loads(response.data)['errors'][0] == {
            'field': field, 'message': f'{field} must be text'
        }

    def test_create_service_rejects_bad_duration(self, client, auth_headers):
        response = client.post(
            '/api/services',
            json={'name': 'Gutter Clean', 'price': 10, 'duration': 0},
            headers=auth_headers
        )

        assert response.status_code == 400

    def test_list_services(self, client, auth_headers, sample_service):
        response = client.get('/api/services', headers=auth_headers)

        assert response.status_code == 200
        services = json.loads(response.data)['services']
        assert [s['name'] for s in services] == ['Lawn Mow']

    def test_update_service_invalidates_cache(self, client, auth_headers, sample_service):
        client.get('/api/services', headers=auth_headers)
        response = client.put(
            f'/api/services/{sample_service.id}',
            json={'price': 50},
            headers=auth_headers
        )
        assert response.status_code == 200

        response = client.get('/api/services', headers=auth_headers)
        assert json.loads(response.data)['services'][0]['price'] == 50.0

    def test_delete_service(self, client, auth_headers, sample_service):
        response = client.delete(f'/api/services/{sample_service.id}', headers=auth_headers)
        assert response.status_code == 200

        response = client.get(f'/api/services/{sample_service.id}', headers=auth_headers)
        assert response.status_code == 404

    def test_other_owner_cannot_edit_service(self, client, other_headers, sample_service):
        response = client.put(
            f'/api/services/{sample_service.id}',
            json={'price': 1},
            headers=other_headers
        )

        assert response.status_code == 404

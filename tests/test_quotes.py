import pytest
import json


@pytest.mark.quotes
class TestQuoteCreation:
    """Drafting quotes and deriving their totals."""

    def test_create_quote_derives_total(
        self, client, auth_headers, sample_customer, sample_service, valid_until
    ):
        response = client.post(
            '/api/quotes',
            json={
                'customer_id': sample_customer.id,
                'valid_until': valid_until,
                'total_amount': 1,
                'items': [
                    {'service_id': sample_service.id, 'quantity': 2},
                    {'description': 'Leaf Blow', 'price': '12.50'}
                ]
            },
            headers=auth_headers
        )

        assert response.status_code == 201
        quote = json.loads(response.data)['quote']
        assert quote['status'] == 'draft'
        assert quote['total_amount'] == 102.5
        assert quote['items'][0]['description'] == 'Lawn Mow'
        assert quote['items'][0]['price'] == 45.0
        assert quote['items'][1]['quantity'] == 1

    def test_create_quote_requires_items(self, client, auth_headers, sample_customer, valid_until):
        response = client.post(
            '/api/quotes',
            json={'customer_id': sample_customer.id, 'valid_until': valid_until, 'items': []},
            headers=auth_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)['errors'][0]['field'] == 'items'

    def test_create_quote_requires_valid_until(self, client, auth_headers, sample_customer):
        response = client.post(
            '/api/quotes',
            json={
                'customer_id': sample_customer.id,
                'items': [{'description': 'Lawn Mow', 'price': 45}]
            },
            headers=auth_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)['errors'][0]['field'] == 'valid_until'

    @pytest.mark.parametrize('item, field', [
        ({'description': 'Mow', 'price': 0}, 'items[0].price'),
        ({'description': 'Mow', 'price': 10, 'quantity': 0}, 'items[0].quantity'),
        ({'description': 'Mow', 'price': 10, 'quantity': 1.5}, 'items[0].quantity'),
        ({'price': 10}, 'items[0].description'),
        ({'description': 42, 'price': 10}, 'items[0].description'),
    ])
    def test_create_quote_rejects_bad_items(
        self, client, auth_headers, sample_customer, valid_until, item, field
    ):
        response = client.post(
            '/api/quotes',
            json={'customer_id': sample_customer.id, 'valid_until': valid_until, 'items': [item]},
            headers=auth_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)['errors'][0]['field'] == field

    def test_create_quote_for_unknown_customer(self, client, auth_headers, valid_until):
        response = client.post(
            '/api/quotes',
            json={
                'customer_id': 'missing',
                'valid_until': valid_until,
                'items': [{'description': 'Lawn Mow', 'price': 45}]
            },
            headers=auth_headers
        )

        assert response.status_code == 404

    def test_create_quote_with_foreign_service(
        self, client, other_headers, sample_service, valid_until
    ):
        customer = json.loads(client.post(
            '/api/customers', json={'name': 'Rival Customer'}, headers=other_headers
        ).data)['customer']

        response = client.post(
            '/api/quotes',
            json={
                'customer_id': customer['id'],
                'valid_until': valid_until,
                'items': [{'service_id': sample_service.id}]
            },
            headers=other_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)['errors'][0]['message'] == 'Service not found'


@pytest.mark.quotes
class TestQuoteTransitions:
    """Quote status changes."""

    def test_update_items_on_draft(
        self, client, auth_headers, sample_customer, valid_until
    ):
        quote = json.loads(client.post(
            '/api/quotes',
            json={
                'customer_id': sample_customer.id,
                'valid_until': valid_until,
                'items': [{'description': 'Lawn Mow', 'price': 45}]
            },
            headers=auth_headers
        ).data)['quote']

        response = client.put(
            f"/api/quotes/{quote['id']}/items",
            json={'items': [{'description': 'Full Yard Cleanup', 'price': 150, 'quantity': 2}]},
            headers=auth_headers
        )

        assert response.status_code == 200
        updated = json.loads(response.data)['quote']
        assert updated['total_amount'] == 300.0
        assert [i['description'] for i in updated['items']] == ['Full Yard Cleanup']

    def test_update_items_after_send_is_rejected(self, client, auth_headers, sent_quote):
        response = client.put(
            f"/api/quotes/{sent_quote['id']}/items",
            json={'items': [{'description': 'Anything', 'price': 1}]},
            headers=auth_headers
        )

        assert response.status_code == 409

    def test_send_twice_is_rejected(self, client, auth_headers, sent_quote):
        assert sent_quote['status'] == 'sent'

        response = client.post(f"/api/quotes/{sent_quote['id']}/send", headers=auth_headers)

        assert response.status_code == 409

    def test_reject_sent_quote(self, client, auth_headers, sent_quote):
        response = client.post(f"/api/quotes/{sent_quote['id']}/reject", headers=auth_headers)

        assert response.status_code == 200
        assert json.loads(response.data)['quote']['status'] == 'rejected'

    def test_convert_creates_job_with_every_item(self, client, auth_headers, sent_quote):
        response = client.post(f"/api/quotes/{sent_quote['id']}/convert", headers=auth_headers)

        assert response.status_code == 201
        job = json.loads(response.data)['job']
        assert job['status'] == 'scheduled'
        assert job['quote_id'] == sent_quote['id']
        assert job['service_name'] == 'Lawn Mow, Hedge Trim'
        assert job['scheduled_start'] == job['scheduled_end']

        quote = json.loads(client.get(
            f"/api/quotes/{sent_quote['id']}", headers=auth_headers
        ).data)['quote']
        assert quote['status'] == 'approved'

    def test_convert_twice_is_rejected(self, client, auth_headers, sent_quote):
        client.post(f"/api/quotes/{sent_quote['id']}/convert", headers=auth_headers)
        response = client.post(f"/api/quotes/{sent_quote['id']}/convert", headers=auth_headers)

        assert response.status_code == 409

        jobs = json.loads(client.get('/api/jobs', headers=auth_headers).data)['jobs']
        assert len(jobs) == 1

    def test_list_quotes_by_status(self, client, auth_headers, sent_quote):
        response = client.get('/api/quotes?status=sent', headers=auth_headers)
        assert [q['id'] for q in json.loads(response.data)['quotes']] == [sent_quote['id']]

        response = client.get('/api/quotes?status=draft', headers=auth_headers)
        assert json.loads(response.data)['quotes'] == []

        response = client.get('/api/quotes?status=bogus', headers=auth_headers)
        assert response.status_code == 400

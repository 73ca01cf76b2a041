import pytest
import json
from datetime import date, datetime, timedelta

from app.models import Invoice, InvoiceStatus, Job, Quote, QuoteStatus, utcnow
from app.scheduler import run_sweeps
from app.services import lifecycle
from app.services.errors import InvalidTransitionError


@pytest.mark.lifecycle
class TestFullLifecycle:
    """Quote to paid invoice through the API."""

    def test_quote_to_paid_invoice(self, client, auth_headers, sample_customer, sample_service):
        quote = json.loads(client.post(
            '/api/quotes',
            json={
                'customer_id': sample_customer.id,
                'valid_until': (date.today() + timedelta(days=7)).isoformat(),
                'items': [{'service_id': sample_service.id}]
            },
            headers=auth_headers
        ).data)['quote']
        client.post(f"/api/quotes/{quote['id']}/send", headers=auth_headers)

        job = json.loads(client.post(
            f"/api/quotes/{quote['id']}/convert", headers=auth_headers
        ).data)['job']
        assert job['service_name'] == 'Lawn Mow'

        client.post(
            f"/api/jobs/{job['id']}/schedule",
            json={'date': '2024-06-01', 'start_time': '09:00', 'duration_hours': 2},
            headers=auth_headers
        )
        client.post(f"/api/jobs/{job['id']}/start", headers=auth_headers)
        client.post(f"/api/jobs/{job['id']}/complete", headers=auth_headers)

        invoice = json.loads(client.post(
            f"/api/jobs/{job['id']}/invoice", headers=auth_headers
        ).data)['invoice']
        assert invoice['amount'] == 45.0

        client.post(f"/api/invoices/{invoice['id']}/send", headers=auth_headers)
        link = json.loads(client.post(
            f"/api/invoices/{invoice['id']}/payment-link", headers=auth_headers
        ).data)
        assert link['url']

        paid = json.loads(client.post(
            f"/api/invoices/{invoice['id']}/mark-paid", headers=auth_headers
        ).data)['invoice']
        assert paid['status'] == 'paid'

    def test_jane_doe_lawn_mow(self, client, auth_headers):
        customer = json.loads(client.post(
            '/api/customers',
            json={'name': 'Jane Doe', 'email': 'jane@x.com'},
            headers=auth_headers
        ).data)['customer']
        service = json.loads(client.post(
            '/api/services', json={'name': 'Lawn Mow', 'price': '50.00'}, headers=auth_headers
        ).data)['service']

        quote = json.loads(client.post(
            '/api/quotes',
            json={
                'customer_id': customer['id'],
                'valid_until': (date.today() + timedelta(days=30)).isoformat(),
                'items': [{'service_id': service['id'], 'quantity': 1, 'price': '50.00'}]
            },
            headers=auth_headers
        ).data)['quote']
        assert quote['total_amount'] == 50.0

        sent = json.loads(client.post(
            f"/api/quotes/{quote['id']}/send", headers=auth_headers
        ).data)['quote']
        assert sent['status'] == 'sent'

        job = json.loads(client.post(
            f"/api/quotes/{quote['id']}/convert", headers=auth_headers
        ).data)['job']
        approved = json.loads(client.get(
            f"/api/quotes/{quote['id']}", headers=auth_headers
        ).data)['quote']
        assert approved['status'] == 'approved'

        scheduled = json.loads(client.post(
            f"/api/jobs/{job['id']}/schedule",
            json={'date': '2024-06-01', 'start_time': '09:00', 'duration_hours': 2},
            headers=auth_headers
        ).data)['job']
        assert scheduled['scheduled_end'] == '2024-06-01T11:00:00'

        completed = json.loads(client.post(
            f"/api/jobs/{job['id']}/complete", headers=auth_headers
        ).data)['job']
        assert completed['status'] == 'completed'

        before = utcnow()
        invoice = json.loads(client.post(
            f"/api/jobs/{job['id']}/invoice", headers=auth_headers
        ).data)['invoice']
        assert invoice['amount'] == 50.0
        assert [
            (i['description'], i['quantity'], i['price']) for i in invoice['items']
        ] == [('Lawn Mow', 1, 50.0)]

        due = datetime.fromisoformat(invoice['due_date'])
        assert before + timedelta(days=14) <= due <= utcnow() + timedelta(days=14)

    def test_convert_draft_quote_is_rejected(
        self, client, auth_headers, sample_customer, valid_until, db_session
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

        response = client.post(f"/api/quotes/{quote['id']}/convert", headers=auth_headers)

        assert response.status_code == 409
        assert db_session.query(Job).count() == 0


@pytest.mark.lifecycle
class TestConditionalTransitions:
    """A stale read cannot apply a transition another request already made."""

    def test_stale_quote_cannot_be_approved_twice(
        self, client, auth_headers, sent_quote, db_session
    ):
        stale = db_session.get(Quote, sent_quote['id'])
        assert stale.status is QuoteStatus.SENT

        client.post(f"/api/quotes/{sent_quote['id']}/convert", headers=auth_headers)

        with pytest.raises(InvalidTransitionError):
            lifecycle._transition(stale, (QuoteStatus.SENT,), QuoteStatus.APPROVED)
        db_session.rollback()

        assert db_session.query(Job).count() == 1

    def test_service_name_joins_all_items(self):
        class Line:
            def __init__(self, description):
                self.description = description

        assert lifecycle.job_title([Line("Lawn Mow"), Line("Hedge Trim")]) == (
            "Lawn Mow, Hedge Trim"
        )
        long_title = lifecycle.job_title([Line("x" * 200), Line("y" * 200)])
        assert len(long_title) == lifecycle.SERVICE_NAME_MAX
        assert long_title.endswith("...")


@pytest.mark.lifecycle
class TestSweeps:
    """Overdue invoices and expired quotes."""

    def test_mark_overdue_invoices(self, client, auth_headers, draft_invoice, db_session):
        client.post(f"/api/invoices/{draft_invoice['id']}/send", headers=auth_headers)

        assert lifecycle.mark_overdue_invoices(now=utcnow()) == 0

        later = utcnow() + timedelta(days=30)
        assert lifecycle.mark_overdue_invoices(now=later) == 1

        db_session.expire_all()
        assert db_session.get(Invoice, draft_invoice['id']).status is InvoiceStatus.OVERDUE

    def test_draft_invoice_never_goes_overdue(self, draft_invoice, db_session):
        later = utcnow() + timedelta(days=30)

        assert lifecycle.mark_overdue_invoices(now=later) == 0

    def test_overdue_invoice_can_still_be_paid(self, client, auth_headers, draft_invoice):
        client.post(f"/api/invoices/{draft_invoice['id']}/send", headers=auth_headers)
        lifecycle.mark_overdue_invoices(now=utcnow() + timedelta(days=30))

        response = client.post(
            f"/api/invoices/{draft_invoice['id']}/mark-paid", headers=auth_headers
        )

        assert json.loads(response.data)['invoice']['status'] == 'paid'

    def test_expire_quotes(self, sent_quote, db_session):
        valid_until = date.fromisoformat(sent_quote['valid_until'])

        assert lifecycle.expire_quotes(today=valid_until) == 0
        assert lifecycle.expire_quotes(today=valid_until + timedelta(days=1)) == 1

        db_session.expire_all()
        assert db_session.get(Quote, sent_quote['id']).status is QuoteStatus.EXPIRED

    def test_scheduler_runs_both_sweeps(self, app, client, auth_headers, sent_quote, db_session):
        stale = db_session.get(Quote, sent_quote['id'])
        stale.valid_until = date.today() - timedelta(days=1)
        db_session.commit()

        result = run_sweeps(app)

        assert result == {"overdue_invoices": 0, "expired_quotes": 1}

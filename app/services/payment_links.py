# Hosted checkout links for invoices
from decimal import Decimal, ROUND_HALF_UP

import stripe
from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models import Invoice, InvoiceStatus, PaymentLink, WebhookEvent
from .errors import (
    InvalidTransitionError,
    NotFoundError,
    PaymentProviderError,
    PaymentProviderNotConfigured,
)
from .lifecycle import mark_invoice_paid
from .records import get_owned

MOCK_LINK_BASE = "https://checkout.stripe.com/mock-payment"
LINKABLE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


def to_minor_units(amount) -> int:
    """Convert a decimal currency amount to integer cents, rounding half up."""
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


class StripePaymentLinkProvider:
    """
    Creates a product, a price and a payment link on Stripe for one invoice.

    Returns ``(url, link_id)``. Any Stripe failure is raised as
    ``PaymentProviderError``.
    """

    def __init__(self, api_key, currency="usd", app_url="http://localhost:3000"):
        self.api_key = api_key
        self.currency = currency
        self.app_url = app_url.rstrip("/")

    def create_link(self, invoice_id, amount, customer_email, description):
        try:
            product = stripe.Product.create(
                api_key=self.api_key,
                name=description,
                metadata={"invoice_id": invoice_id},
            )
            price = stripe.Price.create(
                api_key=self.api_key,
                product=product["id"],
                unit_amount=to_minor_units(amount),
                currency=self.currency,
            )
            link = stripe.PaymentLink.create(
                api_key=self.api_key,
                line_items=[{"price": price["id"], "quantity": 1}],
                metadata={
                    "invoice_id": invoice_id,
                    "customer_email": customer_email or "",
                },
                after_completion={
                    "type": "redirect",
                    "redirect": {
                        "url": f"{self.app_url}/invoices/{invoice_id}?status=paid"
                    },
                },
            )
        except stripe.StripeError as e:
            print(f"[PAYMENTS] Stripe error creating link for invoice {invoice_id}: {e}")
            raise PaymentProviderError(
                "Unable to create payment link. Please try again later.",
                details=getattr(e, "user_message", None) or str(e),
            )
        return link["url"], link["id"]


def get_provider():
    """Provider for the current app, or None when no Stripe key is configured."""
    api_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not api_key:
        return None
    return StripePaymentLinkProvider(
        api_key,
        currency=current_app.config.get("STRIPE_CURRENCY", "usd"),
        app_url=current_app.config.get("APP_URL", "http://localhost:3000"),
    )


def _existing_link(invoice_id):
    return db.session.scalar(
        select(PaymentLink).where(PaymentLink.invoice_id == invoice_id)
    )


def issue_payment_link(user_id, invoice_id):
    """
    Return the checkout link for an invoice, creating it on first use.

    One link per invoice: the unique index on ``payment_links.invoice_id``
    decides between concurrent callers, and the loser returns the winner's
    row. Without a Stripe key a placeholder URL is stored only when
    ``PAYMENT_LINK_MOCK`` allows it.
    """
    invoice = get_owned(Invoice, invoice_id, user_id, label="Invoice")

    existing = _existing_link(invoice.id)
    if existing is not None:
        return existing

    if invoice.status not in LINKABLE_STATUSES:
        raise InvalidTransitionError(
            f"Cannot create payment link: invoice is {invoice.status.value}"
        )

    provider = get_provider()
    if provider is None:
        if not current_app.config.get("PAYMENT_LINK_MOCK"):
            raise PaymentProviderNotConfigured("Payment provider is not configured")
        url, link_id = f"{MOCK_LINK_BASE}/{invoice.id}", None
        print(f"[PAYMENTS] No Stripe key, issuing mock link for invoice {invoice.id}")
    else:
        customer_email = invoice.customer.email if invoice.customer else None
        description = (
            f"Invoice for {invoice.job.service_name}"
            if invoice.job
            else f"Invoice {invoice.id}"
        )
        url, link_id = provider.create_link(
            invoice.id, invoice.amount, customer_email, description
        )

    link = PaymentLink(
        user_id=user_id, invoice_id=invoice.id, url=url, provider_link_id=link_id
    )
    db.session.add(link)
    try:
        db.session.commit()
        return link
    except IntegrityError:
        db.session.rollback()
        winner = _existing_link(invoice.id)
        if winner is None:
            raise
        print(f"[PAYMENTS] Payment link for invoice {invoice.id} already issued, reusing it")
        return winner


def _as_dict(obj):
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return obj


def process_stripe_event(event):
    """
    Apply a verified Stripe event. Returns the stored event status:
    ``processed``, ``ignored`` or ``duplicate``.

    Only ``checkout.session.completed`` with ``payment_status == "paid"``
    changes state: the invoice named in the link metadata becomes paid.
    """
    event_id = event["id"]
    event_type = event["type"]

    already = db.session.scalar(
        select(WebhookEvent).where(WebhookEvent.stripe_event_id == event_id)
    )
    if already is not None:
        print(f"[PAYMENTS] Webhook {event_id} already handled, skipping")
        return "duplicate"

    data_object = _as_dict(event["data"]["object"])
    record = WebhookEvent(
        stripe_event_id=event_id,
        event_type=event_type,
        payload=data_object,
        status="ignored",
    )

    if event_type == "checkout.session.completed":
        invoice_id = (data_object.get("metadata") or {}).get("invoice_id")
        if not invoice_id:
            record.error_message = "No invoice_id in session metadata"
        elif data_object.get("payment_status") != "paid":
            record.error_message = f"Payment status {data_object.get('payment_status')}"
        else:
            try:
                mark_invoice_paid(invoice_id, payment_method="stripe")
                record.status = "processed"
                print(f"[PAYMENTS] Invoice {invoice_id} marked paid by webhook {event_id}")
            except (NotFoundError, InvalidTransitionError) as e:
                record.error_message = e.message
                print(f"[PAYMENTS] Webhook {event_id} not applied: {e.message}")

    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return "duplicate"
    return record.status

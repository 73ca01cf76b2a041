# Invoices: listing, status changes and payment links
from flask import Blueprint, request, jsonify, g
from app.extensions import db
from ...models import Invoice, InvoiceStatus
from ...services import lifecycle
from ...services.errors import ServiceError, ValidationError
from ...services.payment_links import issue_payment_link
from ...services.records import get_owned, list_owned
from ...utils.auth import token_required
from ...utils.validation import FieldError, raise_for_errors, validate_text

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _status_filter(raw):
    try:
        return InvoiceStatus.parse(raw)
    except ValueError:
        raise ValidationError([FieldError("status", f"Unknown invoice status '{raw}'")])


@invoices_bp.route("", methods=["GET"])
@token_required
def list_invoices():
    """
    List invoices, newest first
    ---
    tags:
      - Invoices
    parameters:
      - in: query
        name: status
        type: string
        enum: [draft, sent, pending, paid, overdue, cancelled]
        required: false
      - in: query
        name: customer_id
        type: string
        required: false
    responses:
      200:
        description: Invoices owned by the signed-in user
    """
    try:
        criteria = []
        if request.args.get("status"):
            criteria.append(Invoice.status == _status_filter(request.args["status"]))
        if request.args.get("customer_id"):
            criteria.append(Invoice.customer_id == request.args["customer_id"])

        invoices = list_owned(
            Invoice, g.user_id, *criteria, order_by=Invoice.created_at.desc()
        )
        return jsonify({
            "status": "success",
            "invoices": [i.to_dict(include_items=False) for i in invoices]
        }), 200

    except ServiceError as e:
        return e.to_response()

    except Exception as e:
        print(f"[INVOICES] Error listing invoices: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@invoices_bp.route("/<invoice_id>", methods=["GET"])
@token_required
def get_invoice(invoice_id):
    try:
        invoice = get_owned(Invoice, invoice_id, g.user_id, label="Invoice")
        data = invoice.to_dict()
        data["customer"] = invoice.customer.to_dict() if invoice.customer else None
        return jsonify({"status": "success", "invoice": data}), 200
    except ServiceError as e:
        return e.to_response()

    except Exception as e:
        print(f"[INVOICES] Error fetching invoice {invoice_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


def _invoice_action(invoice_id, action, verb, **kwargs):
    try:
        invoice = action(g.user_id, invoice_id, **kwargs)
        print(f"[INVOICES] Invoice {invoice_id} {verb}")
        return jsonify({"status": "success", "invoice": invoice.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[INVOICES] Error on invoice {invoice_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@invoices_bp.route("/<invoice_id>/send", methods=["POST"])
@token_required
def send_invoice(invoice_id):
    return _invoice_action(invoice_id, lifecycle.send_invoice, "sent")


@invoices_bp.route("/<invoice_id>/cancel", methods=["POST"])
@token_required
def cancel_invoice(invoice_id):
    return _invoice_action(invoice_id, lifecycle.cancel_invoice, "cancelled")


@invoices_bp.route("/<invoice_id>/mark-paid", methods=["POST"])
@token_required
def mark_paid(invoice_id):
    """
    Record a payment taken outside the checkout link
    ---
    tags:
      - Invoices
    parameters:
      - in: path
        name: invoice_id
        type: string
        required: true
      - in: body
        name: body
        required: false
        schema:
          type: object
          properties:
            payment_method:
              type: string
              example: cash
    responses:
      200:
        description: Invoice is paid
      409:
        description: Invoice is already paid or cancelled
    """
    data = request.get_json(silent=True) or {}

    def mark(user_id, record_id):
        method = data.get("payment_method")
        raise_for_errors([validate_text(method, "payment_method", required=False)])
        return lifecycle.mark_invoice_paid(
            record_id,
            user_id=user_id,
            payment_method=(method or "").strip()[:50] or "manual",
        )

    return _invoice_action(invoice_id, mark, "marked paid")


@invoices_bp.route("/<invoice_id>/payment-link", methods=["POST"])
@token_required
def create_payment_link(invoice_id):
    """
    Get or create the hosted checkout link for an invoice
    ---
    tags:
      - Invoices
      - Payments
    parameters:
      - in: path
        name: invoice_id
        type: string
        required: true
    responses:
      200:
        description: Checkout link, reused when one already exists
        schema:
          $ref: '#/definitions/PaymentLinkResponse'
      404:
        description: Invoice not found
      409:
        description: Invoice is paid or cancelled
      502:
        description: Stripe rejected the request
      503:
        description: No payment provider configured
    """
    try:
        link = issue_payment_link(g.user_id, invoice_id)
        return jsonify({
            "status": "success",
            "url": link.url,
            "payment_link": link.to_dict()
        }), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[PAYMENTS] Error creating payment link for invoice {invoice_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500

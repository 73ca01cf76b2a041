# Customer records for the signed-in business owner
from flask import Blueprint, request, jsonify, g
from sqlalchemy import select, func
from app.extensions import db
from ...models import Customer, ContactChannel, Quote, Job, Invoice
from ...services.errors import ServiceError, RecordInUseError
from ...services.records import get_owned, list_owned
from ...services.tenant_cache import tenant_cache
from ...utils.auth import token_required
from ...utils.validation import (
    FieldError,
    raise_for_errors,
    validate_email,
    validate_phone,
    validate_text,
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")

CUSTOMER_FIELDS = ("name", "email", "phone", "address", "notes", "preferred_contact")


def _validate_customer(data, partial=False):
    checks = []
    if not partial or "name" in data:
        checks.append(validate_text(data.get("name"), "name"))
    if data.get("email"):
        checks.append(validate_email(data.get("email")))
    checks.append(validate_phone(data.get("phone")))
    for field in ("address", "notes"):
        checks.append(validate_text(data.get(field), field, required=False))
    contact = data.get("preferred_contact")
    if contact and contact not in [c.value for c in ContactChannel]:
        checks.append(
            FieldError("preferred_contact", "preferred_contact must be 'email' or 'phone'")
        )
    raise_for_errors(checks)


def _apply(customer, data):
    for field in CUSTOMER_FIELDS:
        if field not in data:
            continue
        value = data.get(field)
        if field == "preferred_contact":
            value = ContactChannel(value) if value else None
        elif isinstance(value, str):
            value = value.strip() or None
        setattr(customer, field, value)


def _load_customers(user_id):
    return [
        customer.to_dict()
        for customer in list_owned(Customer, user_id, order_by=Customer.name)
    ]


@customers_bp.route("", methods=["GET"])
@token_required
def list_customers():
    """
    List customers
    ---
    tags:
      - Customers
    parameters:
      - in: query
        name: refresh
        type: boolean
        required: false
        description: Bypass the per-user cache and reload from the database
    responses:
      200:
        description: Customers owned by the signed-in user
      401:
        description: Missing or invalid token
    """
    try:
        loader = lambda: _load_customers(g.user_id)  # noqa: E731
        if request.args.get("refresh", "").lower() in ("1", "true", "yes"):
            customers = tenant_cache.refetch(g.user_id, "customers", loader)
        else:
            customers = tenant_cache.get(g.user_id, "customers", loader)

        return jsonify({"status": "success", "customers": customers}), 200

    except Exception as e:
        print(f"[CUSTOMERS] Error listing customers: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@customers_bp.route("", methods=["POST"])
@token_required
def create_customer():
    """
    Create a customer
    ---
    tags:
      - Customers
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/CustomerPayload'
    responses:
      201:
        description: Customer created
      400:
        description: Validation error
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        data = request.get_json(silent=True) or {}
        _validate_customer(data)

        customer = Customer(user_id=g.user_id)
        _apply(customer, data)
        db.session.add(customer)
        db.session.commit()
        tenant_cache.invalidate(g.user_id, "customers")

        return jsonify({"status": "success", "customer": customer.to_dict()}), 201

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[CUSTOMERS] Error creating customer: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@customers_bp.route("/<customer_id>", methods=["GET"])
@token_required
def get_customer(customer_id):
    """
    Customer details with their quotes, jobs and invoices
    ---
    tags:
      - Customers
    parameters:
      - in: path
        name: customer_id
        type: string
        required: true
    responses:
      200:
        description: Customer found
      404:
        description: Customer not found
    """
    try:
        customer = get_owned(Customer, customer_id, g.user_id, label="Customer")
        data = customer.to_dict()
        data["quotes"] = [
            {
                "id": q.id,
                "status": q.status.value,
                "total_amount": float(q.total_amount),
                "created_at": q.created_at.isoformat() if q.created_at else None,
            }
            for q in customer.quotes
        ]
        data["jobs"] = [
            {
                "id": j.id,
                "service_name": j.service_name,
                "status": j.status.value,
                "scheduled_start": j.scheduled_start.isoformat() if j.scheduled_start else None,
            }
            for j in customer.jobs
        ]
        data["invoices"] = [
            {
                "id": i.id,
                "status": i.status.value,
                "amount": float(i.amount),
                "due_date": i.due_date.isoformat() if i.due_date else None,
            }
            for i in customer.invoices
        ]

        return jsonify({"status": "success", "customer": data}), 200

    except ServiceError as e:
        return e.to_response()

    except Exception as e:
        print(f"[CUSTOMERS] Error loading customer {customer_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@customers_bp.route("/<customer_id>", methods=["PUT"])
@token_required
def update_customer(customer_id):
    try:
        data = request.get_json(silent=True) or {}
        customer = get_owned(Customer, customer_id, g.user_id, label="Customer")
        _validate_customer(data, partial=True)

        _apply(customer, data)
        db.session.commit()
        tenant_cache.invalidate(g.user_id, "customers")

        return jsonify({"status": "success", "customer": customer.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[CUSTOMERS] Error updating customer {customer_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@customers_bp.route("/<customer_id>", methods=["DELETE"])
@token_required
def delete_customer(customer_id):
    """
    Delete a customer that has no quotes, jobs or invoices
    ---
    tags:
      - Customers
    parameters:
      - in: path
        name: customer_id
        type: string
        required: true
    responses:
      200:
        description: Customer deleted
      404:
        description: Customer not found
      409:
        description: Customer still has quotes, jobs or invoices
    """
    try:
        customer = get_owned(Customer, customer_id, g.user_id, label="Customer")

        in_use = sum(
            db.session.scalar(
                select(func.count()).select_from(model).where(model.customer_id == customer.id)
            )
            for model in (Quote, Job, Invoice)
        )
        if in_use:
            raise RecordInUseError(
                "Customer has quotes, jobs or invoices and cannot be deleted"
            )

        db.session.delete(customer)
        db.session.commit()
        tenant_cache.invalidate(g.user_id, "customers")

        return jsonify({"status": "success", "message": "Customer deleted"}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[CUSTOMERS] Error deleting customer {customer_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500

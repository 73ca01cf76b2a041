# Quotes: draft, send, reject, and convert into a job
from flask import Blueprint, request, jsonify, g
from app.extensions import db
from ...models import Quote, QuoteStatus
from ...services import lifecycle
from ...services.errors import ServiceError, ValidationError
from ...services.records import get_owned, list_owned
from ...utils.auth import token_required
from ...utils.validation import FieldError

quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


def _status_filter(raw):
    try:
        return QuoteStatus(raw.lower())
    except ValueError:
        raise ValidationError([FieldError("status", f"Unknown quote status '{raw}'")])


@quotes_bp.route("", methods=["GET"])
@token_required
def list_quotes():
    """
    List quotes, newest first
    ---
    tags:
      - Quotes
    parameters:
      - in: query
        name: status
        type: string
        enum: [draft, sent, approved, rejected, expired]
        required: false
      - in: query
        name: customer_id
        type: string
        required: false
    responses:
      200:
        description: Quotes owned by the signed-in user
    """
    try:
        criteria = []
        if request.args.get("status"):
            criteria.append(Quote.status == _status_filter(request.args["status"]))
        if request.args.get("customer_id"):
            criteria.append(Quote.customer_id == request.args["customer_id"])

        quotes = list_owned(Quote, g.user_id, *criteria, order_by=Quote.created_at.desc())
        return jsonify({
            "status": "success",
            "quotes": [q.to_dict(include_items=False) for q in quotes]
        }), 200

    except ServiceError as e:
        return e.to_response()

    except Exception as e:
        print(f"[QUOTES] Error listing quotes: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@quotes_bp.route("", methods=["POST"])
@token_required
def create_quote():
    """
    Create a draft quote
    ---
    tags:
      - Quotes
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/QuotePayload'
    responses:
      201:
        description: Quote created with a server-computed total
      400:
        description: Validation error
      404:
        description: Customer not found
    """
    try:
        data = request.get_json(silent=True) or {}
        quote = lifecycle.create_quote(
            g.user_id,
            data.get("customer_id"),
            data.get("items"),
            data.get("valid_until"),
            notes=data.get("notes"),
        )
        print(f"[QUOTES] Created quote {quote.id} for customer {quote.customer_id}")

        return jsonify({"status": "success", "quote": quote.to_dict()}), 201

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[QUOTES] Error creating quote: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@quotes_bp.route("/<quote_id>", methods=["GET"])
@token_required
def get_quote(quote_id):
    try:
        quote = get_owned(Quote, quote_id, g.user_id, label="Quote")
        return jsonify({"status": "success", "quote": quote.to_dict()}), 200
    except ServiceError as e:
        return e.to_response()

    except Exception as e:
        print(f"[QUOTES] Error fetching quote {quote_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@quotes_bp.route("/<quote_id>/items", methods=["PUT"])
@token_required
def update_quote_items(quote_id):
    """
    Replace the line items of a draft quote
    ---
    tags:
      - Quotes
    parameters:
      - in: path
        name: quote_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/QuotePayload'
    responses:
      200:
        description: Items replaced and total recomputed
      409:
        description: Quote is no longer a draft
    """
    try:
        data = request.get_json(silent=True) or {}
        quote = lifecycle.update_quote_items(
            g.user_id,
            quote_id,
            data.get("items"),
            valid_until=data.get("valid_until"),
            notes=data.get("notes"),
        )
        return jsonify({"status": "success", "quote": quote.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[QUOTES] Error updating quote {quote_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


def _quote_action(quote_id, action, verb):
    try:
        quote = action(g.user_id, quote_id)
        print(f"[QUOTES] Quote {quote_id} {verb}")
        return jsonify({"status": "success", "quote": quote.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[QUOTES] Error on quote {quote_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@quotes_bp.route("/<quote_id>/send", methods=["POST"])
@token_required
def send_quote(quote_id):
    """
    Mark a draft quote as sent
    ---
    tags:
      - Quotes
    parameters:
      - in: path
        name: quote_id
        type: string
        required: true
    responses:
      200:
        description: Quote is now sent
      409:
        description: Quote is not a draft
    """
    return _quote_action(quote_id, lifecycle.send_quote, "sent")


@quotes_bp.route("/<quote_id>/reject", methods=["POST"])
@token_required
def reject_quote(quote_id):
    return _quote_action(quote_id, lifecycle.reject_quote, "rejected")


@quotes_bp.route("/<quote_id>/convert", methods=["POST"])
@token_required
def convert_quote(quote_id):
    """
    Approve a sent quote and open a job for it
    ---
    tags:
      - Quotes
    parameters:
      - in: path
        name: quote_id
        type: string
        required: true
    responses:
      201:
        description: Quote approved, job created with a placeholder slot
      404:
        description: Quote not found
      409:
        description: Quote is not in the sent state
    """
    try:
        job = lifecycle.convert_quote_to_job(g.user_id, quote_id)
        print(f"[QUOTES] Quote {quote_id} converted to job {job.id}")

        return jsonify({
            "status": "success",
            "quote_id": quote_id,
            "job": job.to_dict()
        }), 201

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[QUOTES] Error converting quote {quote_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500

# Service catalog: what the business sells and at what price
from decimal import Decimal
from flask import Blueprint, request, jsonify, g
from app.extensions import db
from ...models import Service
from ...services.errors import ServiceError
from ...services.records import get_owned, list_owned
from ...services.tenant_cache import tenant_cache
from ...utils.auth import token_required
from ...utils.validation import (
    FieldError,
    raise_for_errors,
    validate_amount,
    validate_text,
)

services_bp = Blueprint("services", __name__, url_prefix="/api/services")


def _validate_service(data, partial=False):
    checks = []
    if not partial or "name" in data:
        checks.append(validate_text(data.get("name"), "name"))
    if not partial or "price" in data:
        checks.append(validate_amount(data.get("price"), "price"))
    for field in ("description", "category"):
        checks.append(validate_text(data.get(field), field, required=False))
    duration = data.get("duration")
    if duration not in (None, ""):
        try:
            if int(duration) <= 0:
                raise ValueError
        except (TypeError, ValueError):
            checks.append(FieldError("duration", "duration must be a positive number of minutes"))
    raise_for_errors(checks)


def _apply(service, data):
    if "name" in data:
        service.name = data["name"].strip()
    if "description" in data:
        service.description = data.get("description")
    if "price" in data:
        service.price = Decimal(str(data["price"])).quantize(Decimal("0.01"))
    if "duration" in data:
        duration = data.get("duration")
        service.duration = int(duration) if duration not in (None, "") else None
    if "category" in data:
        service.category = data.get("category")


def _load_services(user_id):
    return [s.to_dict() for s in list_owned(Service, user_id, order_by=Service.name)]


@services_bp.route("", methods=["GET"])
@token_required
def list_services():
    """
    List the service catalog
    ---
    tags:
      - Services
    parameters:
      - in: query
        name: refresh
        type: boolean
        required: false
    responses:
      200:
        description: Services owned by the signed-in user
    """
    try:
        loader = lambda: _load_services(g.user_id)  # noqa: E731
        if request.args.get("refresh", "").lower() in ("1", "true", "yes"):
            services = tenant_cache.refetch(g.user_id, "services", loader)
        else:
            services = tenant_cache.get(g.user_id, "services", loader)
        return jsonify({"status": "success", "services": services}), 200

    except Exception as e:
        print(f"[SERVICES] Error listing services: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@services_bp.route("", methods=["POST"])
@token_required
def create_service():
    """
    Add a service to the catalog
    ---
    tags:
      - Services
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/ServicePayload'
    responses:
      201:
        description: Service created
      400:
        description: Validation error
    """
    try:
        data = request.get_json(silent=True) or {}
        _validate_service(data)

        service = Service(user_id=g.user_id)
        _apply(service, data)
        db.session.add(service)
        db.session.commit()
        tenant_cache.invalidate(g.user_id, "services")

        return jsonify({"status": "success", "service": service.to_dict()}), 201

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[SERVICES] Error creating service: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@services_bp.route("/<service_id>", methods=["GET"])
@token_required
def get_service(service_id):
    try:
        service = get_owned(Service, service_id, g.user_id, label="Service")
        return jsonify({"status": "success", "service": service.to_dict()}), 200
    except ServiceError as e:
        return e.to_response()

    except Exception as e:
        print(f"[SERVICES] Error fetching service {service_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@services_bp.route("/<service_id>", methods=["PUT"])
@token_required
def update_service(service_id):
    try:
        data = request.get_json(silent=True) or {}
        service = get_owned(Service, service_id, g.user_id, label="Service")
        _validate_service(data, partial=True)

        _apply(service, data)
        db.session.commit()
        tenant_cache.invalidate(g.user_id, "services")

        return jsonify({"status": "success", "service": service.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[SERVICES] Error updating service {service_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@services_bp.route("/<service_id>", methods=["DELETE"])
@token_required
def delete_service(service_id):
    """Quote and invoice lines keep their copied description and price."""
    try:
        service = get_owned(Service, service_id, g.user_id, label="Service")
        db.session.delete(service)
        db.session.commit()
        tenant_cache.invalidate(g.user_id, "services")

        return jsonify({"status": "success", "message": "Service deleted"}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[SERVICES] Error deleting service {service_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500

# Home screen numbers and onboarding checklist
from decimal import Decimal
from flask import Blueprint, jsonify, g
from sqlalchemy import select, func
from app.extensions import db
from ...models import (
    Customer,
    Invoice,
    InvoiceStatus,
    Job,
    JobStatus,
    Profile,
    Quote,
    QuoteStatus,
    Service,
    User,
)
from ...utils.auth import token_required

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")

OPEN_QUOTE_STATUSES = (QuoteStatus.DRAFT, QuoteStatus.SENT)
OUTSTANDING_INVOICE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


def _count(model, user_id, *criteria):
    return db.session.scalar(
        select(func.count()).select_from(model).where(model.user_id == user_id, *criteria)
    ) or 0


@dashboard_bp.route("/summary", methods=["GET"])
@token_required
def get_summary():
    """
    Counts for the home screen and onboarding progress
    ---
    tags:
      - Dashboard
    responses:
      200:
        description: Summary for the signed-in user
        schema:
          type: object
          properties:
            status:
              type: string
            counts:
              type: object
            outstanding_total:
              type: number
            onboarding:
              type: object
    """
    try:
        user = db.session.get(User, g.user_id)
        if not user:
            return jsonify({"status": "error", "message": "User not found"}), 404

        customers = _count(Customer, g.user_id)
        services = _count(Service, g.user_id)
        quotes = _count(Quote, g.user_id)
        counts = {
            "customers": customers,
            "services": services,
            "open_quotes": _count(Quote, g.user_id, Quote.status.in_(OPEN_QUOTE_STATUSES)),
            "upcoming_jobs": _count(Job, g.user_id, Job.status == JobStatus.SCHEDULED),
            "jobs_in_progress": _count(Job, g.user_id, Job.status == JobStatus.IN_PROGRESS),
            "overdue_invoices": _count(
                Invoice, g.user_id, Invoice.status == InvoiceStatus.OVERDUE
            ),
        }

        outstanding = db.session.scalar(
            select(func.coalesce(func.sum(Invoice.amount), 0)).where(
                Invoice.user_id == g.user_id,
                Invoice.status.in_(OUTSTANDING_INVOICE_STATUSES),
            )
        )

        profile = db.session.scalar(select(Profile).where(Profile.user_id == g.user_id))
        steps = {
            "profile": bool(profile and profile.business_name),
            "services": services > 0,
            "customer": customers > 0,
            "quote": quotes > 0,
        }
        complete = all(steps.values())
        if complete and not user.has_completed_onboarding:
            user.has_completed_onboarding = True
            db.session.commit()
            print(f"[DASHBOARD] User {user.id} completed onboarding")

        return jsonify({
            "status": "success",
            "counts": counts,
            "outstanding_total": float(Decimal(str(outstanding)).quantize(Decimal("0.01"))),
            "onboarding": {
                "steps": steps,
                "completed": bool(user.has_completed_onboarding),
            }
        }), 200

    except Exception as e:
        db.session.rollback()
        print(f"[DASHBOARD] Error building summary: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500

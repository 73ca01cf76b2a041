# Jobs: scheduling, progress, and invoicing
from datetime import datetime
from flask import Blueprint, request, jsonify, g
from app.extensions import db
from ...models import Job, JobStatus
from ...services import lifecycle
from ...services.errors import ServiceError, ValidationError
from ...services.records import get_owned, list_owned
from ...utils.auth import token_required
from ...utils.validation import FieldError

jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")


def _status_filter(raw):
    try:
        return JobStatus(raw.lower())
    except ValueError:
        raise ValidationError([FieldError("status", f"Unknown job status '{raw}'")])


def _datetime_arg(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError([FieldError(name, f"Invalid {name} format")])


@jobs_bp.route("", methods=["GET"])
@token_required
def list_jobs():
    """
    List jobs ordered by scheduled start
    ---
    tags:
      - Jobs
    parameters:
      - in: query
        name: status
        type: string
        enum: [scheduled, in_progress, completed, cancelled, invoiced]
        required: false
      - in: query
        name: customer_id
        type: string
        required: false
      - in: query
        name: from
        type: string
        format: date-time
        required: false
      - in: query
        name: to
        type: string
        format: date-time
        required: false
    responses:
      200:
        description: Jobs owned by the signed-in user
    """
    try:
        criteria = []
        if request.args.get("status"):
            criteria.append(Job.status == _status_filter(request.args["status"]))
        if request.args.get("customer_id"):
            criteria.append(Job.customer_id == request.args["customer_id"])
        window_start = _datetime_arg("from")
        window_end = _datetime_arg("to")
        if window_start is not None:
            criteria.append(Job.scheduled_end >= window_start)
        if window_end is not None:
            criteria.append(Job.scheduled_start <= window_end)

        jobs = list_owned(Job, g.user_id, *criteria, order_by=Job.scheduled_start)
        return jsonify({"status": "success", "jobs": [j.to_dict() for j in jobs]}), 200

    except ServiceError as e:
        return e.to_response()

    except Exception as e:
        print(f"[JOBS] Error listing jobs: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@jobs_bp.route("", methods=["POST"])
@token_required
def create_job():
    """
    Open a job without a quote
    ---
    tags:
      - Jobs
    parameters:
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/JobPayload'
    responses:
      201:
        description: Job created
      400:
        description: Validation error
      409:
        description: Slot overlaps another job
    """
    try:
        data = request.get_json(silent=True) or {}
        job = lifecycle.create_job(
            g.user_id,
            data.get("customer_id"),
            data.get("service_name"),
            scheduled_start=data.get("scheduled_start"),
            scheduled_end=data.get("scheduled_end"),
            notes=data.get("notes"),
        )
        print(f"[JOBS] Created job {job.id}")
        return jsonify({"status": "success", "job": job.to_dict()}), 201

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[JOBS] Error creating job: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@jobs_bp.route("/<job_id>", methods=["GET"])
@token_required
def get_job(job_id):
    try:
        job = get_owned(Job, job_id, g.user_id, label="Job")
        data = job.to_dict()
        data["customer"] = job.customer.to_dict() if job.customer else None
        return jsonify({"status": "success", "job": data}), 200
    except ServiceError as e:
        return e.to_response()

    except Exception as e:
        print(f"[JOBS] Error fetching job {job_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@jobs_bp.route("/<job_id>/schedule", methods=["POST"])
@token_required
def schedule_job(job_id):
    """
    Give a job its time slot
    ---
    tags:
      - Jobs
    parameters:
      - in: path
        name: job_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          $ref: '#/definitions/SchedulePayload'
    responses:
      200:
        description: Job scheduled
      400:
        description: Invalid date, time or duration
      409:
        description: Job is not schedulable or the slot overlaps another job
    """
    try:
        data = request.get_json(silent=True) or {}
        job = lifecycle.schedule_job(
            g.user_id,
            job_id,
            data.get("date"),
            data.get("start_time"),
            data.get("duration_hours"),
        )
        print(f"[JOBS] Job {job_id} scheduled {job.scheduled_start} - {job.scheduled_end}")
        return jsonify({"status": "success", "job": job.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[JOBS] Error scheduling job {job_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


def _job_action(job_id, action, verb):
    try:
        job = action(g.user_id, job_id)
        print(f"[JOBS] Job {job_id} {verb}")
        return jsonify({"status": "success", "job": job.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[JOBS] Error on job {job_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500


@jobs_bp.route("/<job_id>/start", methods=["POST"])
@token_required
def start_job(job_id):
    return _job_action(job_id, lifecycle.start_job, "started")


@jobs_bp.route("/<job_id>/complete", methods=["POST"])
@token_required
def complete_job(job_id):
    return _job_action(job_id, lifecycle.complete_job, "completed")


@jobs_bp.route("/<job_id>/cancel", methods=["POST"])
@token_required
def cancel_job(job_id):
    return _job_action(job_id, lifecycle.cancel_job, "cancelled")


@jobs_bp.route("/<job_id>/invoice", methods=["POST"])
@token_required
def invoice_job(job_id):
    """
    Generate the invoice for a completed job
    ---
    tags:
      - Jobs
      - Invoices
    parameters:
      - in: path
        name: job_id
        type: string
        required: true
      - in: body
        name: body
        required: false
        schema:
          type: object
          properties:
            items:
              type: array
              description: Required only for jobs opened without a quote
              items:
                $ref: '#/definitions/LineItem'
    responses:
      201:
        description: Invoice created, job is now invoiced
      409:
        description: Job is not completed
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice = lifecycle.generate_invoice(g.user_id, job_id, items=data.get("items"))
        print(f"[JOBS] Job {job_id} invoiced as {invoice.id}")
        return jsonify({"status": "success", "invoice": invoice.to_dict()}), 201

    except ServiceError as e:
        db.session.rollback()
        return e.to_response()

    except Exception as e:
        db.session.rollback()
        print(f"[JOBS] Error invoicing job {job_id}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500

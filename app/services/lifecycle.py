# Quote -> job -> invoice lifecycle
"""
State-changing operations for quotes, jobs and invoices.

Every operation that writes more than one row commits once, and rolls the
whole unit back on any failure. Status changes are conditional updates
(``WHERE status IN (...)``), so two requests racing on the same record
cannot both apply the same transition.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import select, update

from app.extensions import db
from app.models import (
    Customer,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Job,
    JobStatus,
    Quote,
    QuoteItem,
    QuoteStatus,
    Service,
    utcnow,
)
from app.utils.validation import (
    FieldError,
    raise_for_errors,
    validate_amount,
    validate_date,
    validate_required,
    validate_text,
)
from .errors import (
    InvalidTransitionError,
    NotFoundError,
    ScheduleConflictError,
    ValidationError,
)
from .records import get_owned

SERVICE_NAME_MAX = 255
MAX_JOB_HOURS = 24
ACTIVE_JOB_STATUSES = (JobStatus.SCHEDULED, JobStatus.IN_PROGRESS)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _parse_date(value, field):
    raise_for_errors([validate_date(value, field)])
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def _parse_time(value, field="start_time"):
    raise_for_errors([validate_required(value, field)])
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError([FieldError(field, f"Invalid {field} format, use HH:MM")])


def _parse_datetime(value, field):
    raise_for_errors([validate_date(value, field)])
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return _naive_utc(parsed)


def _naive_utc(value):
    """Slots are stored as naive UTC; input carrying an offset is converted."""
    if value.tzinfo is not None:
        value = (value - value.utcoffset()).replace(tzinfo=None)
    return value


def _parse_quantity(value, field):
    if value is None or value == "":
        return 1
    if isinstance(value, bool):
        raise ValidationError([FieldError(field, f"{field} must be a whole number")])
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError([FieldError(field, f"{field} must be a whole number")])
    if quantity != quantity.to_integral_value() or quantity < 1:
        raise ValidationError([FieldError(field, f"{field} must be at least 1")])
    return int(quantity)


def parse_line_items(user_id, items):
    """
    Normalise client line items into ``{service_id, description, quantity,
    price}`` dicts. A referenced service fills in a missing description or
    price. Client-side totals are ignored.
    """
    if not items or not isinstance(items, list):
        raise ValidationError([FieldError("items", "At least one item is required")])

    parsed = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(
                [FieldError(f"items[{index}]", "Each item must be an object")]
            )

        service = None
        service_id = raw.get("service_id")
        if service_id:
            try:
                service = get_owned(Service, service_id, user_id, label="Service")
            except NotFoundError:
                raise ValidationError(
                    [FieldError(f"items[{index}].service_id", "Service not found")]
                )

        description = raw.get("description")
        if not description and service is not None:
            description = service.name
        price = raw.get("price")
        if price in (None, "") and service is not None:
            price = service.price

        raise_for_errors(
            [
                validate_text(description, f"items[{index}].description"),
                validate_amount(price, f"items[{index}].price"),
            ]
        )
        parsed.append(
            {
                "service_id": service.id if service is not None else None,
                "description": description.strip(),
                "quantity": _parse_quantity(raw.get("quantity"), f"items[{index}].quantity"),
                "price": Decimal(str(price)).quantize(Decimal("0.01")),
            }
        )
    return parsed


def _require_status(record, allowed, action):
    if record.status not in allowed:
        expected = " or ".join(status.value for status in allowed)
        raise InvalidTransitionError(
            f"Cannot {action}: {type(record).__name__.lower()} is "
            f"{record.status.value}, expected {expected}"
        )


def _transition(record, allowed, target, **values):
    """Conditionally move ``record`` to ``target``; fails if another writer got there first."""
    model = type(record)
    result = db.session.execute(
        update(model)
        .where(model.id == record.id, model.status.in_(list(allowed)))
        .values(status=target, **values)
    )
    if result.rowcount != 1:
        raise InvalidTransitionError(
            f"{model.__name__} {record.id} was changed by another request"
        )
    record.status = target
    for key, value in values.items():
        setattr(record, key, value)
    return record


def job_title(items):
    """Job name covering every quoted line, not just the first one."""
    title = ", ".join(item.description for item in items)
    if len(title) > SERVICE_NAME_MAX:
        title = title[: SERVICE_NAME_MAX - 3] + "..."
    return title


def find_schedule_conflict(user_id, start, end, exclude_job_id=None):
    """Return an active job of the same owner whose slot overlaps [start, end)."""
    stmt = select(Job).where(
        Job.user_id == user_id,
        Job.status.in_(ACTIVE_JOB_STATUSES),
        Job.scheduled_end > Job.scheduled_start,
        Job.scheduled_start < end,
        Job.scheduled_end > start,
    )
    if exclude_job_id is not None:
        stmt = stmt.where(Job.id != exclude_job_id)
    return db.session.scalars(stmt.order_by(Job.scheduled_start)).first()


def _check_conflict(user_id, start, end, exclude_job_id=None):
    conflict = find_schedule_conflict(user_id, start, end, exclude_job_id)
    if conflict is not None:
        raise ScheduleConflictError(
            "Time slot overlaps another job",
            details={
                "job_id": conflict.id,
                "service_name": conflict.service_name,
                "scheduled_start": conflict.scheduled_start.isoformat(),
                "scheduled_end": conflict.scheduled_end.isoformat(),
            },
        )


def _commit_or_rollback(work):
    try:
        result = work()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise


# -----------------------------------------------------------------------------
# Quotes
# -----------------------------------------------------------------------------
def create_quote(user_id, customer_id, items, valid_until, notes=None):
    raise_for_errors(
        [
            validate_required(customer_id, "customer_id"),
            validate_date(valid_until, "valid_until"),
            validate_text(notes, "notes", required=False),
        ]
    )
    customer = get_owned(Customer, customer_id, user_id, label="Customer")
    lines = parse_line_items(user_id, items)

    quote = Quote(
        user_id=user_id,
        customer_id=customer.id,
        status=QuoteStatus.DRAFT,
        valid_until=_parse_date(valid_until, "valid_until"),
        notes=notes,
    )
    quote.items = [QuoteItem(position=i, **line) for i, line in enumerate(lines)]
    quote.recalculate_total()

    def work():
        db.session.add(quote)
        return quote

    return _commit_or_rollback(work)


def update_quote_items(user_id, quote_id, items, valid_until=None, notes=None):
    raise_for_errors([validate_text(notes, "notes", required=False)])
    quote = get_owned(Quote, quote_id, user_id, label="Quote", for_update=True)
    _require_status(quote, (QuoteStatus.DRAFT,), "edit quote")
    lines = parse_line_items(user_id, items)

    def work():
        quote.items = [QuoteItem(position=i, **line) for i, line in enumerate(lines)]
        quote.recalculate_total()
        if valid_until is not None:
            quote.valid_until = _parse_date(valid_until, "valid_until")
        if notes is not None:
            quote.notes = notes
        return quote

    return _commit_or_rollback(work)


def send_quote(user_id, quote_id):
    """Mark a draft quote as sent. Nothing is delivered to the customer."""
    quote = get_owned(Quote, quote_id, user_id, label="Quote")
    _require_status(quote, (QuoteStatus.DRAFT,), "send quote")
    return _commit_or_rollback(
        lambda: _transition(quote, (QuoteStatus.DRAFT,), QuoteStatus.SENT)
    )


def reject_quote(user_id, quote_id):
    quote = get_owned(Quote, quote_id, user_id, label="Quote")
    _require_status(quote, (QuoteStatus.SENT,), "reject quote")
    return _commit_or_rollback(
        lambda: _transition(quote, (QuoteStatus.SENT,), QuoteStatus.REJECTED)
    )


def convert_quote_to_job(user_id, quote_id):
    """
    Approve a sent quote and open a job for it.

    The job starts ``scheduled`` with a zero-length placeholder slot at the
    current time until it is given a real one through ``schedule_job``.
    """
    quote = get_owned(Quote, quote_id, user_id, label="Quote", for_update=True)
    _require_status(quote, (QuoteStatus.SENT,), "convert quote")

    def work():
        _transition(quote, (QuoteStatus.SENT,), QuoteStatus.APPROVED)
        now = utcnow()
        job = Job(
            user_id=user_id,
            customer_id=quote.customer_id,
            quote_id=quote.id,
            service_name=job_title(quote.items),
            status=JobStatus.SCHEDULED,
            scheduled_start=now,
            scheduled_end=now,
            notes=quote.notes,
        )
        db.session.add(job)
        return job

    return _commit_or_rollback(work)


def expire_quotes(today=None):
    """Expire draft and sent quotes whose ``valid_until`` has passed."""
    today = today or utcnow().date()
    result = db.session.execute(
        update(Quote)
        .where(
            Quote.status.in_([QuoteStatus.DRAFT, QuoteStatus.SENT]),
            Quote.valid_until.is_not(None),
            Quote.valid_until < today,
        )
        .values(status=QuoteStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount


# -----------------------------------------------------------------------------
# Jobs
# -----------------------------------------------------------------------------
def create_job(
    user_id,
    customer_id,
    service_name,
    scheduled_start=None,
    scheduled_end=None,
    notes=None,
):
    """Open a job directly, without a quote behind it."""
    raise_for_errors(
        [
            validate_required(customer_id, "customer_id"),
            validate_text(service_name, "service_name"),
            validate_text(notes, "notes", required=False),
        ]
    )
    customer = get_owned(Customer, customer_id, user_id, label="Customer")

    if scheduled_start or scheduled_end:
        raise_for_errors(
            [
                validate_date(scheduled_start, "scheduled_start"),
                validate_date(scheduled_end, "scheduled_end"),
            ]
        )
        start = _parse_datetime(scheduled_start, "scheduled_start")
        end = _parse_datetime(scheduled_end, "scheduled_end")
        if end < start:
            raise ValidationError(
                [FieldError("scheduled_end", "scheduled_end must not be before scheduled_start")]
            )
        _check_conflict(user_id, start, end)
    else:
        start = end = utcnow()

    job = Job(
        user_id=user_id,
        customer_id=customer.id,
        service_name=service_name.strip()[:SERVICE_NAME_MAX],
        status=JobStatus.SCHEDULED,
        scheduled_start=start,
        scheduled_end=end,
        notes=notes,
    )

    def work():
        db.session.add(job)
        return job

    return _commit_or_rollback(work)


def schedule_job(user_id, job_id, date_value, start_time, duration_hours):
    """Assign a slot: start = date + start_time, end = start + duration_hours."""
    raise_for_errors(
        [
            validate_date(date_value, "date"),
            validate_required(start_time, "start_time"),
            validate_amount(duration_hours, "duration_hours"),
        ]
    )
    hours = Decimal(str(duration_hours))
    if hours > MAX_JOB_HOURS:
        raise ValidationError(
            [FieldError("duration_hours", f"duration_hours must be at most {MAX_JOB_HOURS}")]
        )
    try:
        start = _naive_utc(
            datetime.combine(_parse_date(date_value, "date"), _parse_time(start_time))
        )
        end = start + timedelta(hours=float(hours))
    except OverflowError:
        raise ValidationError([FieldError("date", "date is out of range")])

    job = get_owned(Job, job_id, user_id, label="Job", for_update=True)
    _require_status(job, (JobStatus.SCHEDULED,), "schedule job")
    _check_conflict(user_id, start, end, exclude_job_id=job.id)

    return _commit_or_rollback(
        lambda: _transition(
            job,
            (JobStatus.SCHEDULED,),
            JobStatus.SCHEDULED,
            scheduled_start=start,
            scheduled_end=end,
        )
    )


def start_job(user_id, job_id):
    job = get_owned(Job, job_id, user_id, label="Job")
    _require_status(job, (JobStatus.SCHEDULED,), "start job")
    return _commit_or_rollback(
        lambda: _transition(
            job, (JobStatus.SCHEDULED,), JobStatus.IN_PROGRESS, actual_start=utcnow()
        )
    )


def complete_job(user_id, job_id):
    job = get_owned(Job, job_id, user_id, label="Job")
    _require_status(job, ACTIVE_JOB_STATUSES, "complete job")
    return _commit_or_rollback(
        lambda: _transition(
            job, ACTIVE_JOB_STATUSES, JobStatus.COMPLETED, actual_end=utcnow()
        )
    )


def cancel_job(user_id, job_id):
    job = get_owned(Job, job_id, user_id, label="Job")
    _require_status(job, ACTIVE_JOB_STATUSES, "cancel job")
    return _commit_or_rollback(
        lambda: _transition(job, ACTIVE_JOB_STATUSES, JobStatus.CANCELLED)
    )


# -----------------------------------------------------------------------------
# Invoices
# -----------------------------------------------------------------------------
def _invoice_items(lines):
    return [
        InvoiceItem(
            position=i,
            service_id=line["service_id"],
            description=line["description"],
            quantity=line["quantity"],
            price=line["price"],
        )
        for i, line in enumerate(lines)
    ]


def generate_invoice(user_id, job_id, items=None):
    """
    Bill a completed job.

    Line items are copied from the job's quote; a job opened without a quote
    must be given ``items``. The invoice, its items and the job's move to
    ``invoiced`` are committed together.
    """
    job = get_owned(Job, job_id, user_id, label="Job", for_update=True)
    _require_status(job, (JobStatus.COMPLETED,), "invoice job")

    quote = db.session.get(Quote, job.quote_id) if job.quote_id else None
    if quote is not None and quote.items:
        lines = [
            {
                "service_id": item.service_id,
                "description": item.description,
                "quantity": item.quantity,
                "price": item.price,
            }
            for item in quote.items
        ]
    else:
        lines = parse_line_items(user_id, items)

    due_days = current_app.config.get("INVOICE_DUE_DAYS", 14)

    def work():
        invoice = Invoice(
            user_id=user_id,
            customer_id=job.customer_id,
            job_id=job.id,
            quote_id=job.quote_id,
            status=InvoiceStatus.DRAFT,
            due_date=utcnow() + timedelta(days=due_days),
        )
        db.session.add(invoice)
        invoice.items = _invoice_items(lines)
        invoice.recalculate_amount()
        db.session.flush()
        _transition(job, (JobStatus.COMPLETED,), JobStatus.INVOICED)
        return invoice

    return _commit_or_rollback(work)


def send_invoice(user_id, invoice_id):
    """Mark a draft invoice as sent. Nothing is delivered to the customer."""
    invoice = get_owned(Invoice, invoice_id, user_id, label="Invoice")
    _require_status(invoice, (InvoiceStatus.DRAFT,), "send invoice")
    return _commit_or_rollback(
        lambda: _transition(invoice, (InvoiceStatus.DRAFT,), InvoiceStatus.SENT)
    )


PAYABLE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


def mark_invoice_paid(invoice_id, user_id=None, payment_method="manual", paid_at=None):
    """
    Record payment of an invoice.

    ``user_id`` is None when the call comes from the payment provider's
    webhook, which is not acting for a signed-in owner.
    """
    if user_id is not None:
        invoice = get_owned(Invoice, invoice_id, user_id, label="Invoice")
    else:
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
    _require_status(invoice, PAYABLE_STATUSES, "mark invoice paid")
    return _commit_or_rollback(
        lambda: _transition(
            invoice,
            PAYABLE_STATUSES,
            InvoiceStatus.PAID,
            paid_date=paid_at or utcnow(),
            payment_method=payment_method,
        )
    )


def cancel_invoice(user_id, invoice_id):
    invoice = get_owned(Invoice, invoice_id, user_id, label="Invoice")
    _require_status(invoice, PAYABLE_STATUSES, "cancel invoice")
    return _commit_or_rollback(
        lambda: _transition(invoice, PAYABLE_STATUSES, InvoiceStatus.CANCELLED)
    )


def mark_overdue_invoices(now=None):
    """Flag sent invoices whose due date has passed."""
    now = now or utcnow()
    result = db.session.execute(
        update(Invoice)
        .where(Invoice.status == InvoiceStatus.SENT, Invoice.due_date < now)
        .values(status=InvoiceStatus.OVERDUE)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount

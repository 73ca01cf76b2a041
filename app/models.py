import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DECIMAL,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKeyConstraint,
    Index,
    Integer,
    JSON,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()

CENT = Decimal("0.01")


def generate_uuid():
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None


def sum_line_items(items) -> Decimal:
    """Sum of price * quantity over the given line items, rounded to cents."""
    total = Decimal("0")
    for item in items:
        total += Decimal(str(item.price)) * int(item.quantity)
    return total.quantize(CENT)


class QuoteStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class JobStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INVOICED = "invoiced"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value):
        """Accept the legacy "pending" spelling for a sent invoice."""
        if isinstance(value, cls):
            return value
        value = (value or "").strip().lower()
        if value == "pending":
            return cls.SENT
        return cls(value)


class ContactChannel(str, enum.Enum):
    EMAIL = "email"
    PHONE = "phone"


class TimestampMixin:
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class User(TimestampMixin, Base):
    __tablename__ = "users"
    __table_args__ = (Index("uq_users_email", "email", unique=True),)

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    email = mapped_column(String(255), nullable=False)
    password_hash = mapped_column(LargeBinary(72), nullable=False)
    business_name = mapped_column(String(255))
    has_completed_onboarding = mapped_column(Boolean, nullable=False, default=False)

    profile: Mapped[Optional["Profile"]] = relationship(
        "Profile", uselist=False, back_populates="user"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "business_name": self.business_name,
            "has_completed_onboarding": bool(self.has_completed_onboarding),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_profile_user"
        ),
        Index("uq_profiles_user", "user_id", unique=True),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id = mapped_column(String(36), nullable=False)
    business_name = mapped_column(String(255))
    address = mapped_column(String(255))
    phone = mapped_column(String(50))
    email = mapped_column(String(255))
    website = mapped_column(String(255))
    description = mapped_column(Text)
    service_area = mapped_column(String(255))
    operating_hours = mapped_column(JSON)
    latitude = mapped_column(Float)
    longitude = mapped_column(Float)

    user: Mapped["User"] = relationship("User", back_populates="profile")

    def to_dict(self):
        return {
            "id": self.id,
            "business_name": self.business_name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "website": self.website,
            "description": self.description,
            "service_area": self.service_area,
            "operating_hours": self.operating_hours,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "updated_at": _iso(self.updated_at),
        }


class Customer(TimestampMixin, Base):
    __tablename__ = "customers"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_customer_user"
        ),
        Index("ix_customers_user", "user_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id = mapped_column(String(36), nullable=False)
    name = mapped_column(String(255), nullable=False)
    email = mapped_column(String(255))
    phone = mapped_column(String(50))
    address = mapped_column(String(255))
    notes = mapped_column(Text)
    preferred_contact = mapped_column(
        Enum(ContactChannel, name="contact_channel", values_callable=_enum_values)
    )

    quotes: Mapped[List["Quote"]] = relationship(
        "Quote", uselist=True, back_populates="customer"
    )
    jobs: Mapped[List["Job"]] = relationship(
        "Job", uselist=True, back_populates="customer"
    )
    invoices: Mapped[List["Invoice"]] = relationship(
        "Invoice", uselist=True, back_populates="customer"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "notes": self.notes,
            "preferred_contact": (
                self.preferred_contact.value if self.preferred_contact else None
            ),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Service(TimestampMixin, Base):
    __tablename__ = "services"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_service_user"
        ),
        Index("ix_services_user", "user_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id = mapped_column(String(36), nullable=False)
    name = mapped_column(String(255), nullable=False)
    description = mapped_column(Text)
    price = mapped_column(DECIMAL(10, 2), nullable=False)
    duration = mapped_column(Integer, comment="Minutes")
    category = mapped_column(String(100))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": _money(self.price),
            "duration": self.duration,
            "category": self.category,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Quote(TimestampMixin, Base):
    __tablename__ = "quotes"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_quote_user"
        ),
        ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name="fk_quote_customer"
        ),
        Index("ix_quotes_user_status", "user_id", "status"),
        Index("ix_quotes_customer", "customer_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id = mapped_column(String(36), nullable=False)
    customer_id = mapped_column(String(36), nullable=False)
    status = mapped_column(
        Enum(QuoteStatus, name="quote_status", values_callable=_enum_values),
        nullable=False,
        default=QuoteStatus.DRAFT,
    )
    total_amount = mapped_column(DECIMAL(10, 2), nullable=False, default=Decimal("0.00"))
    valid_until = mapped_column(Date)
    notes = mapped_column(Text)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="quotes")
    items: Mapped[List["QuoteItem"]] = relationship(
        "QuoteItem",
        uselist=True,
        back_populates="quote",
        order_by="QuoteItem.position",
        cascade="all, delete-orphan",
    )

    def recalculate_total(self):
        self.total_amount = sum_line_items(self.items)
        return self.total_amount

    def to_dict(self, include_items=True):
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "status": self.status.value,
            "total_amount": _money(self.total_amount),
            "valid_until": _iso(self.valid_until),
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class QuoteItem(TimestampMixin, Base):
    __tablename__ = "quote_items"
    __table_args__ = (
        ForeignKeyConstraint(
            ["quote_id"], ["quotes.id"], ondelete="CASCADE", name="fk_qi_quote"
        ),
        ForeignKeyConstraint(
            ["service_id"], ["services.id"], ondelete="SET NULL", name="fk_qi_service"
        ),
        Index("ix_quote_items_quote", "quote_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    quote_id = mapped_column(String(36), nullable=False)
    service_id = mapped_column(String(36))
    position = mapped_column(Integer, nullable=False, default=0)
    description = mapped_column(String(255), nullable=False)
    quantity = mapped_column(Integer, nullable=False, default=1)
    price = mapped_column(DECIMAL(10, 2), nullable=False)

    quote: Mapped["Quote"] = relationship("Quote", back_populates="items")

    def to_dict(self):
        return {
            "id": self.id,
            "service_id": self.service_id,
            "description": self.description,
            "quantity": self.quantity,
            "price": _money(self.price),
        }


class Job(TimestampMixin, Base):
    __tablename__ = "jobs"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_job_user"
        ),
        ForeignKeyConstraint(["customer_id"], ["customers.id"], name="fk_job_customer"),
        ForeignKeyConstraint(
            ["quote_id"], ["quotes.id"], ondelete="SET NULL", name="fk_job_quote"
        ),
        Index("ix_jobs_user_schedule", "user_id", "scheduled_start"),
        Index("ix_jobs_customer", "customer_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id = mapped_column(String(36), nullable=False)
    customer_id = mapped_column(String(36), nullable=False)
    quote_id = mapped_column(String(36))
    service_name = mapped_column(String(255), nullable=False)
    status = mapped_column(
        Enum(JobStatus, name="job_status", values_callable=_enum_values),
        nullable=False,
        default=JobStatus.SCHEDULED,
    )
    scheduled_start = mapped_column(DateTime, nullable=False)
    scheduled_end = mapped_column(DateTime, nullable=False)
    actual_start = mapped_column(DateTime)
    actual_end = mapped_column(DateTime)
    notes = mapped_column(Text)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="jobs")
    quote: Mapped[Optional["Quote"]] = relationship("Quote")

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "quote_id": self.quote_id,
            "service_name": self.service_name,
            "status": self.status.value,
            "scheduled_start": _iso(self.scheduled_start),
            "scheduled_end": _iso(self.scheduled_end),
            "actual_start": _iso(self.actual_start),
            "actual_end": _iso(self.actual_end),
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Invoice(TimestampMixin, Base):
    __tablename__ = "invoices"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_invoice_user"
        ),
        ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name="fk_invoice_customer"
        ),
        ForeignKeyConstraint(
            ["job_id"], ["jobs.id"], ondelete="SET NULL", name="fk_invoice_job"
        ),
        ForeignKeyConstraint(
            ["quote_id"], ["quotes.id"], ondelete="SET NULL", name="fk_invoice_quote"
        ),
        Index("ix_invoices_user_status", "user_id", "status"),
        Index("ix_invoices_customer", "customer_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id = mapped_column(String(36), nullable=False)
    customer_id = mapped_column(String(36), nullable=False)
    job_id = mapped_column(String(36))
    quote_id = mapped_column(String(36))
    status = mapped_column(
        Enum(InvoiceStatus, name="invoice_status", values_callable=_enum_values),
        nullable=False,
        default=InvoiceStatus.DRAFT,
    )
    amount = mapped_column(DECIMAL(10, 2), nullable=False, default=Decimal("0.00"))
    due_date = mapped_column(DateTime, nullable=False)
    paid_date = mapped_column(DateTime)
    payment_method = mapped_column(String(50))
    notes = mapped_column(Text)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="invoices")
    job: Mapped[Optional["Job"]] = relationship("Job")
    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        uselist=True,
        back_populates="invoice",
        order_by="InvoiceItem.position",
        cascade="all, delete-orphan",
    )
    payment_link: Mapped[Optional["PaymentLink"]] = relationship(
        "PaymentLink", uselist=False, back_populates="invoice"
    )

    def recalculate_amount(self):
        self.amount = sum_line_items(self.items)
        return self.amount

    def to_dict(self, include_items=True):
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "job_id": self.job_id,
            "quote_id": self.quote_id,
            "status": self.status.value,
            "amount": _money(self.amount),
            "due_date": _iso(self.due_date),
            "paid_date": _iso(self.paid_date),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "payment_url": self.payment_link.url if self.payment_link else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(TimestampMixin, Base):
    __tablename__ = "invoice_items"
    __table_args__ = (
        ForeignKeyConstraint(
            ["invoice_id"], ["invoices.id"], ondelete="CASCADE", name="fk_ii_invoice"
        ),
        ForeignKeyConstraint(
            ["service_id"], ["services.id"], ondelete="SET NULL", name="fk_ii_service"
        ),
        Index("ix_invoice_items_invoice", "invoice_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    invoice_id = mapped_column(String(36), nullable=False)
    service_id = mapped_column(String(36))
    position = mapped_column(Integer, nullable=False, default=0)
    description = mapped_column(String(255), nullable=False)
    quantity = mapped_column(Integer, nullable=False, default=1)
    price = mapped_column(DECIMAL(10, 2), nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    def to_dict(self):
        return {
            "id": self.id,
            "service_id": self.service_id,
            "description": self.description,
            "quantity": self.quantity,
            "price": _money(self.price),
        }


class PaymentLink(TimestampMixin, Base):
    __tablename__ = "payment_links"
    __table_args__ = (
        ForeignKeyConstraint(
            ["invoice_id"], ["invoices.id"], ondelete="CASCADE", name="fk_pl_invoice"
        ),
        Index("uq_payment_links_invoice", "invoice_id", unique=True),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id = mapped_column(String(36), nullable=False)
    invoice_id = mapped_column(String(36), nullable=False)
    url = mapped_column(String(2048), nullable=False)
    provider_link_id = mapped_column(String(255))

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="payment_link")

    def to_dict(self):
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "url": self.url,
            "created_at": _iso(self.created_at),
        }


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"
    __table_args__ = (Index("uq_revoked_tokens_jti", "jti", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    jti = mapped_column(String(64), nullable=False)
    user_id = mapped_column(String(36), nullable=False)
    expires_at = mapped_column(DateTime)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)


class WebhookEvent(Base):
    """Audit log for incoming Stripe webhook events."""

    __tablename__ = "webhook_events"
    __table_args__ = (
        Index("uq_webhook_events_stripe_id", "stripe_event_id", unique=True),
    )

    id = mapped_column(String(36), primary_key=True, default=generate_uuid)
    stripe_event_id = mapped_column(String(255), nullable=False)
    event_type = mapped_column(String(100), nullable=False)
    payload = mapped_column(JSON)
    status = mapped_column(String(20), nullable=False, default="processed")
    error_message = mapped_column(Text)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)

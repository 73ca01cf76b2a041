# Tenant-scoped lookups shared by the API handlers and the lifecycle service
from sqlalchemy import select

from app.extensions import db
from .errors import NotFoundError


def get_owned(model, record_id, user_id, label=None, for_update=False):
    """
    Fetch one row of ``model`` by id, scoped to the owning user.

    Rows owned by another user are reported exactly like missing rows.
    """
    stmt = select(model).where(model.id == record_id, model.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    record = db.session.scalar(stmt)
    if record is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return record


def list_owned(model, user_id, *criteria, order_by=None):
    stmt = select(model).where(model.user_id == user_id, *criteria)
    if order_by is not None:
        stmt = stmt.order_by(order_by)
    return db.session.scalars(stmt).all()

# Overview: Service-layer operations for customers and their address book.

"""
Customer Service

ADDRESS BOOK RULES:
- At most MAX_ACTIVE_ADDRESSES non-deleted addresses per customer.
- At most one default; setting a new default clears the others in the
  same transaction.
- Delete is soft: the row stays (orders may still reference its id in
  their snapshot) but disappears from listings and checkout.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Customer, CustomerAddress
from ..models.customers import MAX_ACTIVE_ADDRESSES
from ..schemas import AddressCommand, AddressPatch
from ..validation import NotFoundError, ValidationError
from .concurrency import run_with_retry

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone"}


def list_customers(*, q: str | None = None, limit: int = 100) -> list[Customer]:
    query = db.session.query(Customer)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(db.or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like)))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).limit(limit).all()


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("customer not found")
    return customer


def create_customer(patch: dict, *, user_id: int | None = None) -> Customer:
    customer = Customer(user_id=user_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, patch: dict) -> Customer:
    customer = get_customer(customer_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.commit()
    return customer


def _active_addresses(customer_id: int):
    return db.session.query(CustomerAddress).filter_by(customer_id=customer_id, is_deleted=False)


def _get_address(customer_id: int, address_id: int) -> CustomerAddress:
    address = _active_addresses(customer_id).filter_by(id=address_id).first()
    if address is None:
        raise NotFoundError("address not found")
    return address


def _clear_default(customer_id: int) -> None:
    _active_addresses(customer_id).filter_by(is_default=True).update(
        {CustomerAddress.is_default: False}, synchronize_session="fetch"
    )


def list_addresses(customer_id: int) -> list[CustomerAddress]:
    get_customer(customer_id)
    return (
        _active_addresses(customer_id)
        .order_by(CustomerAddress.is_default.desc(), CustomerAddress.created_at.asc(), CustomerAddress.id.asc())
        .all()
    )


def create_address(customer_id: int, command: AddressCommand) -> CustomerAddress:
    def _op():
        get_customer(customer_id)
        if _active_addresses(customer_id).count() >= MAX_ACTIVE_ADDRESSES:
            raise ValidationError(f"Maximum {MAX_ACTIVE_ADDRESSES} addresses per customer")

        if command.is_default:
            _clear_default(customer_id)

        fields = command.address.as_snapshot()
        fields.pop("address_id")
        address = CustomerAddress(customer_id=customer_id, is_default=command.is_default, **fields)
        db.session.add(address)
        db.session.commit()
        return address

    return run_with_retry(_op)


def update_address(customer_id: int, address_id: int, patch: AddressPatch) -> CustomerAddress:
    def _op():
        address = _get_address(customer_id, address_id)
        if patch.is_default:
            _clear_default(customer_id)
        for k, v in patch.changes.items():
            setattr(address, k, v)
        if patch.is_default is not None:
            address.is_default = patch.is_default
        db.session.commit()
        return address

    return run_with_retry(_op)


def delete_address(customer_id: int, address_id: int) -> None:
    def _op():
        address = _get_address(customer_id, address_id)
        address.is_deleted = True
        address.is_default = False
        db.session.commit()

    run_with_retry(_op)


def set_default_address(customer_id: int, address_id: int) -> CustomerAddress:
    def _op():
        address = _get_address(customer_id, address_id)
        _clear_default(customer_id)
        address.is_default = True
        db.session.commit()
        return address

    return run_with_retry(_op)

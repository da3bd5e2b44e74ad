from typing import Optional, Tuple

from sqlalchemy.orm import Session

from whatsapp_desk.database import dialect_insert
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.models import Customer, Message

logger = get_logger("customer_service")


def normalize_phone(phone: str) -> str:
    """Digits only, without a leading '+' or trunk '0'."""
    digits = "".join(ch for ch in (phone or "") if ch.isdigit())
    return digits.lstrip("0")


def get_customer(db: Session, phone: str) -> Optional[Customer]:
    return db.query(Customer).filter(Customer.phone == phone).first()


def ensure_placeholder(db: Session, phone: str) -> bool:
    """Insert an empty, unverified customer unless one exists. Returns True if inserted."""
    stmt = (
        dialect_insert(db, Customer)
        .values(phone=phone, name="", email="", customer_id="", verified=False)
        .on_conflict_do_nothing(index_elements=["phone"])
    )
    result = db.execute(stmt)
    db.flush()
    return result.rowcount > 0


def resolve(db: Session, phone: str) -> Tuple[Customer, bool]:
    """Find the customer for a phone, creating a placeholder on first contact.

    Returns (customer, created). Concurrent first contacts are safe: the insert is
    ON CONFLICT DO NOTHING and the row is read back afterwards.
    """
    created = ensure_placeholder(db, phone)
    customer = get_customer(db, phone)
    if created:
        logger.info("Placeholder customer created", extra={"context": {"phone": phone}})
    return customer, created


def verify(db: Session, phone: str, name: str, email: str, customer_id: str) -> Customer:
    """Mark a customer verified and overwrite identity fields (insert if absent)."""
    values = {
        "name": name or "",
        "email": email or "",
        "customer_id": customer_id or "",
        "verified": True,
    }
    stmt = (
        dialect_insert(db, Customer)
        .values(phone=phone, **values)
        .on_conflict_do_update(index_elements=["phone"], set_=values)
    )
    db.execute(stmt)
    db.flush()
    customer = get_customer(db, phone)
    if customer is not None:
        # The ORM may hold a stale copy from an earlier read in this session.
        db.refresh(customer)
    logger.info("Customer verified", extra={"context": {"phone": phone, "customer_id": customer_id}})
    return customer


def sync_from_messages(db: Session) -> int:
    """Create placeholder rows for every phone in the message log that has none."""
    phones = [
        row[0]
        for row in db.query(Message.from_number)
        .outerjoin(Customer, Customer.phone == Message.from_number)
        .filter(Customer.phone.is_(None))
        .distinct()
        .all()
    ]
    inserted = 0
    for phone in phones:
        if ensure_placeholder(db, phone):
            inserted += 1
    return inserted

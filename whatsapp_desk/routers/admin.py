"""Admin API: customers, dashboard users and stored conversation flows."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from whatsapp_desk.database import get_db
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.models import AdminUser, Customer, Flow, FlowStep
from whatsapp_desk.security import hash_password, require_admin_token
from whatsapp_desk.services import account_service, conversation_log, customer_service
from whatsapp_desk.services.dispatch_service import dispatch_and_log
from whatsapp_desk.services.thread_state import ThreadTag

logger = get_logger("admin")

router = APIRouter(prefix="/api", tags=["admin"], dependencies=[Depends(require_admin_token)])

VERIFIED_WELCOME = "Hi, you've been verified.\nHow can we assist?\n1. Support\n2. Sales\n3. Accounts"
ALLOWED_ROLES = {"admin", "agent"}


# === SCHEMAS ===


def _required_phone(value: str) -> str:
    normalized = customer_service.normalize_phone(value)
    if not normalized:
        raise ValueError("phone is required")
    return normalized


class PhoneRequest(BaseModel):
    phone: str

    @field_validator("phone")
    @classmethod
    def normalize(cls, value: str) -> str:
        return _required_phone(value)


class VerifyClientRequest(BaseModel):
    phone: str
    name: str
    email: str = ""
    customer_id: str

    @field_validator("phone")
    @classmethod
    def normalize(cls, value: str) -> str:
        return _required_phone(value)

    @field_validator("name", "customer_id")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class CustomerUpdate(VerifyClientRequest):
    status: Optional[str] = None
    street: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    payment_method: Optional[str] = None
    balance: Optional[Decimal] = None
    labels: Optional[str] = None


class AddUserRequest(BaseModel):
    username: str
    password: str
    role: str = "agent"

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("username is required")
        return value.strip()

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value or "") < 8:
            raise ValueError("password must be at least 8 characters")
        return value

    @field_validator("role")
    @classmethod
    def role_allowed(cls, value: str) -> str:
        role = (value or "").strip().lower()
        if role not in ALLOWED_ROLES:
            raise ValueError(f"role must be one of {sorted(ALLOWED_ROLES)}")
        return role


class IdRequest(BaseModel):
    id: int


class FlowUpsert(BaseModel):
    id: Optional[int] = None
    name: str
    trigger: Optional[str] = None
    active: bool = True

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("name is required")
        return value.strip()


class FlowStepUpsert(BaseModel):
    id: Optional[int] = None
    flow_id: int
    position: int = 0
    message: str
    expected_reply: Optional[str] = None


def _customer_dict(customer: Customer) -> dict:
    return {
        "phone": customer.phone,
        "name": customer.name,
        "email": customer.email,
        "customer_id": customer.customer_id,
        "verified": bool(customer.verified),
        "status": customer.status,
        "street": customer.street,
        "zip_code": customer.zip_code,
        "city": customer.city,
        "payment_method": customer.payment_method,
        "balance": str(customer.balance) if customer.balance is not None else None,
        "labels": customer.labels,
    }


def _step_dict(step: FlowStep) -> dict:
    return {
        "id": step.id,
        "flow_id": step.flow_id,
        "position": step.position,
        "message": step.message,
        "expected_reply": step.expected_reply,
    }


# === CUSTOMERS ===


@router.get("/customers")
async def list_customers(db: Session = Depends(get_db)):
    return [_customer_dict(c) for c in db.query(Customer).order_by(Customer.name.asc()).all()]


@router.get("/unlinked-clients")
async def list_unlinked_clients(db: Session = Depends(get_db)):
    customers = db.query(Customer).filter(Customer.verified.is_not(True)).order_by(Customer.phone.asc()).all()
    return [_customer_dict(c) for c in customers]


@router.get("/customer-lookup")
def customer_lookup(phone: str = Query(..., min_length=1)):
    """Look up the billing system's record for a phone number."""
    result = account_service.lookup_customer(customer_service.normalize_phone(phone))
    if not result.ok:
        if result.error_code == "not_found":
            raise HTTPException(status_code=404, detail="No billing customer for this phone")
        raise HTTPException(status_code=502, detail=f"Billing lookup failed: {result.error_code}")
    return result.value


@router.post("/update-customer")
async def update_customer(data: CustomerUpdate, db: Session = Depends(get_db)):
    customer = customer_service.verify(db, data.phone, data.name, data.email, data.customer_id)
    for field in ("status", "street", "zip_code", "city", "payment_method", "balance", "labels"):
        value = getattr(data, field)
        if value is not None:
            setattr(customer, field, value)
    db.commit()
    return {"ok": True, "customer": _customer_dict(customer)}


@router.post("/verify-client")
def verify_client(data: VerifyClientRequest, db: Session = Depends(get_db)):
    customer = customer_service.verify(db, data.phone, data.name, data.email, data.customer_id)
    db.commit()
    sent = dispatch_and_log(db, data.phone, VERIFIED_WELCOME, ThreadTag.SYSTEM.value, conversation_log.now_millis())
    return {"ok": True, "sent": sent, "customer": _customer_dict(customer)}


@router.post("/delete-client")
async def delete_client(data: PhoneRequest, db: Session = Depends(get_db)):
    customer = customer_service.get_customer(db, data.phone)
    if not customer:
        raise HTTPException(status_code=404, detail=f"Customer {data.phone} not found")
    db.delete(customer)
    db.commit()
    logger.info("Customer deleted", extra={"context": {"phone": data.phone}})
    return {"ok": True}


@router.post("/customers-sync")
async def customers_sync(db: Session = Depends(get_db)):
    inserted = customer_service.sync_from_messages(db)
    db.commit()
    return {"ok": True, "inserted": inserted}


# === DASHBOARD USERS ===


@router.get("/users")
async def list_users(db: Session = Depends(get_db)):
    users = db.query(AdminUser).order_by(AdminUser.username.asc()).all()
    return [{"id": u.id, "username": u.username, "role": u.role} for u in users]


@router.post("/add-user")
async def add_user(data: AddUserRequest, db: Session = Depends(get_db)):
    if db.query(AdminUser).filter(AdminUser.username == data.username).first():
        raise HTTPException(status_code=400, detail=f"username: '{data.username}' already exists")
    user = AdminUser(username=data.username, password_hash=hash_password(data.password), role=data.role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return {"ok": True, "id": user.id}


@router.post("/delete-user")
async def delete_user(data: IdRequest, db: Session = Depends(get_db)):
    user = db.query(AdminUser).filter(AdminUser.id == data.id).first()
    if not user:
        raise HTTPException(status_code=404, detail=f"User {data.id} not found")
    db.delete(user)
    db.commit()
    return {"ok": True}


# === FLOWS ===


@router.get("/flows")
async def list_flows(db: Session = Depends(get_db)):
    flows = db.query(Flow).order_by(Flow.id.asc()).all()
    return [
        {"id": f.id, "name": f.name, "trigger": f.trigger, "active": bool(f.active), "steps": len(f.steps)}
        for f in flows
    ]


@router.post("/flows")
async def upsert_flow(data: FlowUpsert, db: Session = Depends(get_db)):
    if data.id is not None:
        flow = db.query(Flow).filter(Flow.id == data.id).first()
        if not flow:
            raise HTTPException(status_code=404, detail=f"Flow {data.id} not found")
    else:
        flow = Flow()
        db.add(flow)
    flow.name = data.name
    flow.trigger = data.trigger
    flow.active = data.active
    db.commit()
    db.refresh(flow)
    return {"ok": True, "id": flow.id}


@router.post("/flow-delete")
async def delete_flow(data: IdRequest, db: Session = Depends(get_db)):
    flow = db.query(Flow).filter(Flow.id == data.id).first()
    if not flow:
        raise HTTPException(status_code=404, detail=f"Flow {data.id} not found")
    db.delete(flow)
    db.commit()
    return {"ok": True}


@router.get("/flow-steps")
async def list_flow_steps(flow_id: int, db: Session = Depends(get_db)):
    steps = db.query(FlowStep).filter(FlowStep.flow_id == flow_id).order_by(FlowStep.position.asc()).all()
    return [_step_dict(s) for s in steps]


@router.post("/flow-steps")
async def upsert_flow_step(data: FlowStepUpsert, db: Session = Depends(get_db)):
    if not db.query(Flow).filter(Flow.id == data.flow_id).first():
        raise HTTPException(status_code=404, detail=f"Flow {data.flow_id} not found")
    if data.id is not None:
        step = db.query(FlowStep).filter(FlowStep.id == data.id).first()
        if not step:
            raise HTTPException(status_code=404, detail=f"Flow step {data.id} not found")
    else:
        step = FlowStep()
        db.add(step)
    step.flow_id = data.flow_id
    step.position = data.position
    step.message = data.message
    step.expected_reply = data.expected_reply
    db.commit()
    db.refresh(step)
    return {"ok": True, "step": _step_dict(step)}


@router.post("/flow-step-delete")
async def delete_flow_step(data: IdRequest, db: Session = Depends(get_db)):
    step = db.query(FlowStep).filter(FlowStep.id == data.id).first()
    if not step:
        raise HTTPException(status_code=404, detail=f"Flow step {data.id} not found")
    db.delete(step)
    db.commit()
    return {"ok": True}

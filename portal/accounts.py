# portal/accounts.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .auth import hash_password, hash_reset_token, new_reset_token, verify_password
from .emailer import send_password_reset
from .errors import Conflict, Forbidden, NotAuthenticated, NotFound, ValidationFailed
from .models import Admin, Client, Order, PasswordReset
from .schemas import (
    AdminPasswordIn,
    AdminProfileIn,
    ClientProfileIn,
    RegisterIn,
    ResetPasswordIn,
    ValidateResetTokenIn,
)
from .settings import settings

log = logging.getLogger(__name__)

CLIENT_STATUSES = ("pending", "approved", "suspended")
ADMIN_ROLES = ("super_admin", "admin", "manager")

CLIENT_MIN_PASSWORD = 8
ADMIN_MIN_PASSWORD = 6
RESET_TOKEN_TTL = timedelta(hours=1)

FORGOT_PASSWORD_MESSAGE = "If an account exists, a reset link will be sent"


def _clean_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


# -------------------
# Registration / login
# -------------------
def register_client(db: Session, payload: RegisterIn) -> Client:
    required = (payload.email, payload.password, payload.business_name, payload.contact_person, payload.phone)
    if not all((v or "").strip() for v in required):
        raise ValidationFailed("All required fields must be provided")
    if len(payload.password) < CLIENT_MIN_PASSWORD:
        raise ValidationFailed(f"Password must be at least {CLIENT_MIN_PASSWORD} characters long")

    email = _clean_email(payload.email)
    if db.query(Client.id).filter(Client.email == email).first():
        raise Conflict("An account with this email already exists")

    client = Client(
        email=email,
        password_hash=hash_password(payload.password),
        business_name=payload.business_name.strip(),
        contact_person=payload.contact_person.strip(),
        phone=payload.phone.strip(),
        gst_number=(payload.gst_number or "").strip() or None,
        status="pending",
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    log.info("client %s registered (%s)", client.id, client.email)
    return client


def authenticate_client(db: Session, email: Optional[str], password: Optional[str]) -> Client:
    if not email or not password:
        raise ValidationFailed("Email and password are required")

    client = db.query(Client).filter(Client.email == _clean_email(email)).first()
    if not client or not verify_password(password, client.password_hash):
        log.info("failed client login for %s", _clean_email(email))
        raise NotAuthenticated("Invalid email or password")

    # pending accounts may still sign in
    if client.status == "suspended":
        raise Forbidden("Your account has been suspended")

    log.info("client %s logged in", client.id)
    return client


def create_admin(db: Session, email: str, password: str, name: str, role: str = "admin") -> Admin:
    email = _clean_email(email)
    if not email or not password or not (name or "").strip():
        raise ValidationFailed("Email, password and name are required")
    if role not in ADMIN_ROLES:
        raise ValidationFailed("Invalid role")
    if len(password) < ADMIN_MIN_PASSWORD:
        raise ValidationFailed(f"Password must be at least {ADMIN_MIN_PASSWORD} characters")
    if db.query(Admin.id).filter(Admin.email == email).first():
        raise Conflict("An admin with this email already exists")

    admin = Admin(email=email, password_hash=hash_password(password), name=name.strip(), role=role)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    log.info("admin %s created (%s, %s)", admin.id, admin.email, admin.role)
    return admin


def authenticate_admin(db: Session, email: Optional[str], password: Optional[str]) -> Admin:
    if not email or not password:
        raise ValidationFailed("Email and password are required")

    admin = db.query(Admin).filter(Admin.email == _clean_email(email)).first()
    if not admin or not verify_password(password, admin.password_hash):
        log.info("failed admin login for %s", _clean_email(email))
        raise NotAuthenticated("Invalid email or password")
    if not admin.is_active:
        raise Forbidden("Your account has been deactivated")

    admin.last_login = datetime.utcnow()
    db.add(admin)
    db.commit()
    db.refresh(admin)
    log.info("admin %s logged in", admin.id)
    return admin


# -------------------
# Profiles
# -------------------
def _email_taken(db: Session, model, email: str, own_id: int) -> bool:
    return db.query(model.id).filter(model.email == email, model.id != own_id).first() is not None


def update_client_profile(db: Session, client: Client, payload: ClientProfileIn) -> Client:
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailed("Nothing to update")

    if updates.get("email"):
        updates["email"] = _clean_email(updates["email"])
        if _email_taken(db, Client, updates["email"], client.id):
            raise Conflict("Email is already in use")

    for field in ("email", "contact_person", "phone", "business_name"):
        if field in updates and not (updates[field] or "").strip():
            raise ValidationFailed(f"{field} cannot be empty")

    for k, v in updates.items():
        setattr(client, k, v.strip() if isinstance(v, str) else v)

    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def update_admin_profile(db: Session, admin: Admin, payload: AdminProfileIn) -> Admin:
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailed("Nothing to update")

    if "name" in updates and not (updates["name"] or "").strip():
        raise ValidationFailed("Name is required")
    if "email" in updates:
        if not updates["email"]:
            raise ValidationFailed("Email is required")
        updates["email"] = _clean_email(updates["email"])
        if _email_taken(db, Admin, updates["email"], admin.id):
            raise Conflict("Email is already in use")

    for k, v in updates.items():
        setattr(admin, k, v.strip() if isinstance(v, str) else v)

    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def change_admin_password(db: Session, admin: Admin, payload: AdminPasswordIn) -> None:
    if not payload.current_password or not payload.new_password:
        raise ValidationFailed("Current password and new password are required")
    if len(payload.new_password) < ADMIN_MIN_PASSWORD:
        raise ValidationFailed(f"New password must be at least {ADMIN_MIN_PASSWORD} characters")
    if not verify_password(payload.current_password, admin.password_hash):
        raise NotAuthenticated("Current password is incorrect")

    admin.password_hash = hash_password(payload.new_password)
    db.add(admin)
    db.commit()
    log.info("admin %s changed password", admin.id)


# -------------------
# Password reset
# -------------------
def _account_model(user_type: Optional[str]):
    return Admin if user_type == "admin" else Client


def _reset_link(token: str, email: str, user_type: str) -> str:
    path = "admin/reset-password" if user_type == "admin" else "reset-password"
    return f"{settings.base_url}/{path}?{urlencode({'token': token, 'email': email})}"


def request_password_reset(db: Session, email: Optional[str], user_type: Optional[str]) -> bool:
    """
    Store a hashed one-hour token and mail the raw token as a link.
    Returns whether an account matched; callers answer the same way either way.
    """
    email = _clean_email(email)
    if not email:
        raise ValidationFailed("Email is required")
    user_type = "admin" if user_type == "admin" else "client"

    model = _account_model(user_type)
    if not db.query(model.id).filter(model.email == email).first():
        log.info("password reset requested for unknown %s %s", user_type, email)
        return False

    token = new_reset_token()
    db.add(
        PasswordReset(
            email=email,
            user_type=user_type,
            token_hash=hash_reset_token(token),
            expires_at=datetime.utcnow() + RESET_TOKEN_TTL,
        )
    )
    db.commit()
    log.info("password reset requested for %s %s", user_type, email)

    send_password_reset(email, _reset_link(token, email, user_type), user_type)
    return True


def _find_reset(db: Session, token: Optional[str], email: Optional[str], user_type: str) -> Optional[PasswordReset]:
    if not token or not email:
        raise ValidationFailed("Token and email are required")
    return (
        db.query(PasswordReset)
        .filter(
            PasswordReset.token_hash == hash_reset_token(token),
            PasswordReset.email == _clean_email(email),
            PasswordReset.user_type == user_type,
            PasswordReset.is_used.is_(False),
            PasswordReset.expires_at > datetime.utcnow(),
        )
        .first()
    )


def validate_reset_token(db: Session, payload: ValidateResetTokenIn) -> bool:
    return _find_reset(db, payload.token, payload.email, payload.user_type) is not None


def reset_password(db: Session, payload: ResetPasswordIn) -> None:
    if not payload.password:
        raise ValidationFailed("Password is required")
    if len(payload.password) < CLIENT_MIN_PASSWORD:
        raise ValidationFailed(f"Password must be at least {CLIENT_MIN_PASSWORD} characters long")

    reset = _find_reset(db, payload.token, payload.email, payload.user_type)
    if not reset:
        raise ValidationFailed("Invalid or expired reset token")

    model = _account_model(reset.user_type)
    account = db.query(model).filter(model.email == reset.email).first()
    if not account:
        raise NotFound("Account not found")

    account.password_hash = hash_password(payload.password)
    reset.is_used = True
    db.add_all([account, reset])
    db.commit()
    log.info("password reset completed for %s %s", reset.user_type, reset.email)


# -------------------
# Client management (admin)
# -------------------
def order_totals(db: Session, client_ids: List[int]) -> Tuple[Dict[int, int], Dict[int, float]]:
    """Order count and paid spend per client id."""
    if not client_ids:
        return {}, {}
    counts = dict(
        db.query(Order.client_id, func.count(Order.id))
        .filter(Order.client_id.in_(client_ids))
        .group_by(Order.client_id)
        .all()
    )
    spent = dict(
        db.query(Order.client_id, func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.client_id.in_(client_ids), Order.payment_status == "paid")
        .group_by(Order.client_id)
        .all()
    )
    return counts, spent


def list_clients(
    db: Session,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[List[Tuple[Client, int, float]], int]:
    """Clients newest first, each with its order count and paid spend."""
    q = db.query(Client)
    if status and status != "all":
        q = q.filter(Client.status == status)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Client.business_name.ilike(term),
                Client.contact_person.ilike(term),
                Client.email.ilike(term),
            )
        )

    total = q.count()
    q = q.order_by(Client.created_at.desc(), Client.id.desc())
    if limit:
        q = q.limit(limit).offset(offset)
    clients = q.all()

    counts, spent = order_totals(db, [c.id for c in clients])
    rows = [(c, int(counts.get(c.id, 0)), float(spent.get(c.id, 0) or 0)) for c in clients]
    return rows, total


def get_client(db: Session, client_id: int) -> Client:
    client = db.get(Client, client_id)
    if not client:
        raise NotFound("Client not found")
    return client


def recent_client_orders(db: Session, client_id: int, limit: int = 5) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.client_id == client_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )


def update_client_status(db: Session, client_id: int, status: Optional[str]) -> Client:
    if status not in CLIENT_STATUSES:
        raise ValidationFailed("Invalid status")

    client = get_client(db, client_id)
    before = client.status
    client.status = status
    db.add(client)
    db.commit()
    db.refresh(client)
    log.info("client %s status %s -> %s", client.id, before, status)
    return client


def client_summary(c: Client, total_orders: int, total_spent: float) -> Dict[str, Any]:
    return {
        "id": c.id,
        "email": c.email,
        "businessName": c.business_name,
        "contactPerson": c.contact_person,
        "phone": c.phone,
        "gstNumber": c.gst_number,
        "city": c.city,
        "state": c.state,
        "status": c.status,
        "createdAt": c.created_at.isoformat() if c.created_at else None,
        "totalOrders": total_orders,
        "totalSpent": total_spent,
    }

# portal/stats.py
from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import Client, Order, ProductVariant
from .schemas import order_dict

REVENUE_STATUSES = ("confirmed", "processing", "shipped", "delivered")
ACTIVE_STATUSES = ("pending", "confirmed")


def _month_keys(now: datetime, months: int) -> List[str]:
    keys = []
    y, m = now.year, now.month
    for _ in range(months):
        keys.append(f"{y:04d}-{m:02d}")
        m -= 1
        if m == 0:
            y, m = y - 1, 12
    return list(reversed(keys))


def revenue_by_month(db: Session, months: int = 6, now: datetime | None = None) -> List[Dict[str, Any]]:
    """
    Revenue per calendar month, oldest first, zero-filled.
    Bucketed in Python so the query stays portable across SQLite and MySQL.
    """
    now = now or datetime.utcnow()
    keys = _month_keys(now, months)
    first = datetime.strptime(keys[0], "%Y-%m")

    buckets: "OrderedDict[str, Dict[str, Any]]" = OrderedDict(
        (k, {"month": k, "revenue": 0.0, "orders": 0}) for k in keys
    )
    rows = (
        db.query(Order.created_at, Order.total_amount)
        .filter(Order.status.in_(REVENUE_STATUSES), Order.created_at >= first)
        .all()
    )
    for created_at, amount in rows:
        b = buckets.get(created_at.strftime("%Y-%m"))
        if b is not None:
            b["revenue"] += float(amount or 0)
            b["orders"] += 1

    return list(buckets.values())


def admin_stats(db: Session) -> Dict[str, Any]:
    total_revenue = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.status.in_(REVENUE_STATUSES))
        .scalar()
    )
    by_status = dict(db.query(Order.status, func.count(Order.id)).group_by(Order.status).all())
    low_stock = (
        db.query(func.count(ProductVariant.id))
        .filter(
            ProductVariant.is_active.is_(True),
            ProductVariant.stock_quantity <= ProductVariant.low_stock_threshold,
        )
        .scalar()
    )
    recent = db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(5).all()

    return {
        "totalRevenue": float(total_revenue or 0),
        "totalOrders": db.query(func.count(Order.id)).scalar() or 0,
        "totalClients": db.query(func.count(Client.id)).scalar() or 0,
        "pendingOrders": int(by_status.get("pending", 0)),
        "lowStockCount": int(low_stock or 0),
        "revenueByMonth": revenue_by_month(db),
        "ordersByStatus": {k: int(v) for k, v in by_status.items()},
        "recentOrders": [order_dict(o) for o in recent],
    }


def client_stats(db: Session, client: Client) -> Dict[str, Any]:
    q = db.query(Order).filter(Order.client_id == client.id)
    by_status = dict(
        db.query(Order.status, func.count(Order.id))
        .filter(Order.client_id == client.id)
        .group_by(Order.status)
        .all()
    )
    total_spent = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.client_id == client.id, Order.status != "cancelled")
        .scalar()
    )
    recent = q.order_by(Order.created_at.desc(), Order.id.desc()).limit(5).all()

    return {
        "totalOrders": sum(int(v) for v in by_status.values()),
        "activeOrders": sum(int(by_status.get(s, 0)) for s in ACTIVE_STATUSES),
        "completedOrders": int(by_status.get("delivered", 0)),
        "totalSpent": float(total_spent or 0),
        "recentOrders": [order_dict(o, with_client=False) for o in recent],
        "clientName": client.contact_person or client.business_name,
        "businessName": client.business_name,
    }

"""
Inventory Lifecycle - Database Operations

Tenant-scoped orders and frames persisted from parsed vendor emails.

Modules:
- Order persistence (save_parsed_order) - dedup on (account, vendor, order_number)
- Receipt (confirm_order, get_unreceived_items, mark_items_received,
  get_order_receipt_status)
- Status transitions (mark_item_sold, archive_item, restore_item)
- Queries (get_inventory, get_orders)
- Email run log (log_processed_email, get_processed_emails)

Receipt state is inventory_items.received_at. "Unreceived" always means
received_at IS NULL; the order status label is derived from it.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from .base import get_session
from .models.inventory import InventoryItem, InventoryOrder, ProcessedEmail

logger = logging.getLogger(__name__)

ITEM_FIELDS = (
    "brand",
    "model",
    "color",
    "color_code",
    "size",
    "eye_size",
    "bridge",
    "temple",
    "upc",
    "sku",
    "wholesale_price",
    "msrp",
    "in_stock",
    "material",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_date(value) -> Optional[date]:
    if not value or isinstance(value, date):
        return value or None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def item_to_dict(item: InventoryItem) -> dict:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "catalog_id": item.catalog_id,
        **{name: getattr(item, name) for name in ITEM_FIELDS},
        "wholesale_price": _money(item.wholesale_price),
        "msrp": _money(item.msrp),
        "quantity": item.quantity,
        "api_verified": item.api_verified,
        "confidence_score": item.confidence_score,
        "status": item.status,
        "received": item.received_at is not None,
        "received_at": _iso(item.received_at),
        "sold_at": _iso(item.sold_at),
        "archived_at": _iso(item.archived_at),
    }


def order_to_dict(order: InventoryOrder) -> dict:
    return {
        "id": order.id,
        "vendor_id": order.vendor_id,
        "vendor_name": order.vendor_name,
        "order_number": order.order_number,
        "reference_number": order.reference_number,
        "customer_name": order.customer_name,
        "account_number": order.account_number,
        "rep_name": order.rep_name,
        "order_date": _iso(order.order_date),
        "total_pieces": order.total_pieces,
        "status": order.status,
        "created_at": _iso(order.created_at),
        "confirmed_at": _iso(order.confirmed_at),
    }


def _find_order(session, account_id: int, order_number: str, vendor_name: str = None):
    query = session.query(InventoryOrder).filter(
        InventoryOrder.account_id == account_id,
        InventoryOrder.order_number == order_number,
    )
    if vendor_name:
        query = query.filter(InventoryOrder.vendor_name == vendor_name)
    return query.order_by(InventoryOrder.id.desc()).first()


def _receipt_counts(session, order_id: int) -> tuple[int, int]:
    """(total items, received items) for an order."""
    total, received = (
        session.query(
            func.count(InventoryItem.id),
            func.count(InventoryItem.received_at),
        )
        .filter(InventoryItem.order_id == order_id)
        .one()
    )
    return total or 0, received or 0


def _refresh_order_status(session, order: InventoryOrder) -> tuple[int, int]:
    """Derive the order status label from item receipt state."""
    session.flush()
    total, received = _receipt_counts(session, order.id)

    if total and received == total:
        order.status = "confirmed"
        order.confirmed_at = order.confirmed_at or _now()
    elif received:
        order.status = "partial"
        order.confirmed_at = None
    else:
        order.status = "pending"
        order.confirmed_at = None
    return total, received


# ============================================================================
# ORDER PERSISTENCE
# ============================================================================


def save_parsed_order(account_id: int, record: dict) -> dict:
    """
    Persist a pipeline record as an order with pending items.

    Args:
        account_id: Tenant account
        record: Pipeline output with vendor, vendorId, order{...} and items[...]

    Returns:
        Dict with order_id, created, items_added and duplicate

    Raises:
        ValueError: If the record has no order number
    """
    header = record.get("order") or {}
    order_number = header.get("order_number")
    vendor_name = record.get("vendorName") or record.get("vendor") or "unknown"
    if not order_number:
        raise ValueError("order_number is required to persist an order")

    with get_session() as session:
        existing = _find_order(session, account_id, order_number, vendor_name)
        if existing:
            logger.info(f"Duplicate order {vendor_name} #{order_number} for account {account_id}")
            return {"order_id": existing.id, "created": False, "items_added": 0, "duplicate": True}

        order = InventoryOrder(
            account_id=account_id,
            vendor_id=record.get("vendorId"),
            vendor_name=vendor_name,
            order_number=order_number,
            reference_number=header.get("reference_number"),
            customer_name=header.get("customer_name"),
            customer_code=header.get("customer_code"),
            account_number=header.get("account_number"),
            rep_name=header.get("rep_name"),
            order_date=_parse_date(header.get("order_date")),
            total_pieces=header.get("total_pieces") or 0,
            status="pending",
        )
        for line in record.get("items") or []:
            order.items.append(
                InventoryItem(
                    account_id=account_id,
                    vendor_id=record.get("vendorId"),
                    catalog_id=line.get("catalog_id"),
                    **{name: line.get(name) for name in ITEM_FIELDS},
                    quantity=max(int(line.get("quantity") or 1), 1),
                    api_verified=bool(line.get("api_verified")),
                    confidence_score=line.get("confidence_score") or 0,
                    status="pending",
                )
            )

        session.add(order)
        try:
            session.commit()
        except IntegrityError:
            # Same order saved concurrently by another run
            session.rollback()
            existing = _find_order(session, account_id, order_number, vendor_name)
            if existing is None:
                raise
            return {"order_id": existing.id, "created": False, "items_added": 0, "duplicate": True}

        logger.info(
            f"Saved order {vendor_name} #{order_number} with {len(order.items)} items "
            f"for account {account_id}"
        )
        return {
            "order_id": order.id,
            "created": True,
            "items_added": len(order.items),
            "duplicate": False,
        }


def get_orders(account_id: int, status: str = None) -> list:
    with get_session() as session:
        query = session.query(InventoryOrder).filter(InventoryOrder.account_id == account_id)
        if status:
            query = query.filter(InventoryOrder.status == status)
        return [order_to_dict(o) for o in query.order_by(InventoryOrder.created_at.desc()).all()]


# ============================================================================
# RECEIPT
# ============================================================================


def confirm_order(
    account_id: int,
    order_number: str,
    frame_ids: Optional[list[int]] = None,
    vendor_name: str = None,
) -> dict:
    """
    Mark an order's frames as received.

    Args:
        account_id: Tenant account
        order_number: Vendor order number
        frame_ids: Item ids to confirm; None confirms every unreceived item
        vendor_name: Disambiguates order numbers reused across vendors

    Returns:
        Dict with success, updated_count, order_status, total_items,
        received_items and pending_items
    """
    with get_session() as session:
        order = _find_order(session, account_id, order_number, vendor_name)
        if order is None:
            return {"success": False, "error": f"Order {order_number} not found", "updated_count": 0}

        query = session.query(InventoryItem).filter(
            InventoryItem.order_id == order.id,
            InventoryItem.received_at.is_(None),
        )
        if frame_ids is not None:
            query = query.filter(InventoryItem.id.in_(frame_ids))
        targets = query.all()

        received_at = _now()
        for item in targets:
            item.received_at = received_at
            item.updated_at = received_at
            if item.status == "pending":
                item.status = "current"

        total, received = _refresh_order_status(session, order)
        session.commit()

        logger.info(
            f"Confirmed {len(targets)} items on order #{order_number} "
            f"({received}/{total} received, status={order.status})"
        )
        return {
            "success": True,
            "updated_count": len(targets),
            "order_status": order.status,
            "total_items": total,
            "received_items": received,
            "pending_items": total - received,
        }


def get_unreceived_items(account_id: int, order_number: str, vendor_name: str = None) -> list:
    """Items on an order with no receipt recorded."""
    with get_session() as session:
        order = _find_order(session, account_id, order_number, vendor_name)
        if order is None:
            return []
        items = (
            session.query(InventoryItem)
            .filter(
                InventoryItem.order_id == order.id,
                InventoryItem.received_at.is_(None),
            )
            .order_by(InventoryItem.id)
            .all()
        )
        return [item_to_dict(i) for i in items]


def mark_items_received(account_id: int, item_ids: list[int], received: bool = True) -> dict:
    """
    Set or clear receipt on individual items and re-derive order status.

    Clearing receipt moves a 'current' item back to 'pending'.
    """
    with get_session() as session:
        items = (
            session.query(InventoryItem)
            .filter(
                InventoryItem.account_id == account_id,
                InventoryItem.id.in_(item_ids or []),
            )
            .all()
        )

        now = _now()
        updated = 0
        for item in items:
            if received and item.received_at is None:
                item.received_at = now
                if item.status == "pending":
                    item.status = "current"
            elif not received and item.received_at is not None:
                item.received_at = None
                if item.status == "current":
                    item.status = "pending"
            else:
                continue
            item.updated_at = now
            updated += 1

        statuses = {}
        for order in {item.order for item in items}:
            _refresh_order_status(session, order)
            statuses[order.order_number] = order.status
        session.commit()

        return {"success": True, "updated_count": updated, "order_statuses": statuses}


def get_order_receipt_status(account_id: int, order_number: str, vendor_name: str = None) -> Optional[dict]:
    with get_session() as session:
        order = _find_order(session, account_id, order_number, vendor_name)
        if order is None:
            return None
        total, received = _receipt_counts(session, order.id)
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "vendor_name": order.vendor_name,
            "status": order.status,
            "total_items": total,
            "received_items": received,
            "pending_items": total - received,
        }


# ============================================================================
# STATUS TRANSITIONS
# ============================================================================


def _get_item(session, account_id: int, item_id: int) -> Optional[InventoryItem]:
    return (
        session.query(InventoryItem)
        .filter(InventoryItem.account_id == account_id, InventoryItem.id == item_id)
        .first()
    )


def mark_item_sold(account_id: int, item_id: int) -> bool:
    """current -> sold. Archived items cannot be sold."""
    with get_session() as session:
        item = _get_item(session, account_id, item_id)
        if item is None or item.status in ("sold", "archived"):
            return False
        now = _now()
        item.status = "sold"
        item.sold_at = now
        item.updated_at = now
        session.commit()
        return True


def archive_item(account_id: int, item_id: int) -> bool:
    with get_session() as session:
        item = _get_item(session, account_id, item_id)
        if item is None or item.status == "archived":
            return False
        now = _now()
        item.status = "archived"
        item.archived_at = now
        item.updated_at = now
        session.commit()
        return True


def restore_item(account_id: int, item_id: int) -> bool:
    """Undo sold/archived; the item returns to current or pending by receipt state."""
    with get_session() as session:
        item = _get_item(session, account_id, item_id)
        if item is None or item.status not in ("sold", "archived"):
            return False
        item.status = "current" if item.received_at else "pending"
        item.sold_at = None
        item.archived_at = None
        item.updated_at = _now()
        session.commit()
        return True


def get_inventory(account_id: int, status: str = None, include_archived: bool = False) -> list:
    with get_session() as session:
        query = session.query(InventoryItem).filter(InventoryItem.account_id == account_id)
        if status:
            query = query.filter(InventoryItem.status == status)
        elif not include_archived:
            query = query.filter(InventoryItem.status != "archived")
        return [item_to_dict(i) for i in query.order_by(InventoryItem.id).all()]


# ============================================================================
# EMAIL RUN LOG
# ============================================================================


def log_processed_email(
    sender: str,
    subject: str,
    parse_status: str,
    account_id: int = None,
    vendor_code: str = None,
    detection_confidence: int = None,
    detection_tier: str = None,
    error_code: str = None,
    error_reason: str = None,
    items_count: int = 0,
    order_id: int = None,
) -> int:
    """Record the outcome of one pipeline run. Returns the row id."""
    with get_session() as session:
        row = ProcessedEmail(
            account_id=account_id,
            sender=(sender or "")[:255],
            subject=subject,
            vendor_code=vendor_code,
            detection_confidence=detection_confidence,
            detection_tier=detection_tier,
            parse_status=parse_status,
            error_code=error_code,
            error_reason=error_reason,
            items_count=items_count,
            order_id=order_id,
        )
        session.add(row)
        session.commit()
        return row.id


def get_processed_emails(account_id: int = None, parse_status: str = None, limit: int = 50) -> list:
    with get_session() as session:
        query = session.query(ProcessedEmail)
        if account_id is not None:
            query = query.filter(ProcessedEmail.account_id == account_id)
        if parse_status:
            query = query.filter(ProcessedEmail.parse_status == parse_status)
        rows = query.order_by(ProcessedEmail.id.desc()).limit(limit).all()
        return [
            {
                "id": r.id,
                "account_id": r.account_id,
                "sender": r.sender,
                "subject": r.subject,
                "vendor_code": r.vendor_code,
                "detection_confidence": r.detection_confidence,
                "parse_status": r.parse_status,
                "error_code": r.error_code,
                "error_reason": r.error_reason,
                "items_count": r.items_count,
                "order_id": r.order_id,
                "created_at": _iso(r.created_at),
            }
            for r in rows
        ]

"""
Inventory Service - Business Logic

Order receipt and frame status transitions for one account.

Separates business logic from HTTP routing concerns.
"""

import logging

import database

logger = logging.getLogger(__name__)


def _id_list(values, name: str) -> list[int]:
    if not isinstance(values, list):
        raise ValueError(f"{name} must be a list of ids")
    try:
        return [int(v) for v in values]
    except (TypeError, ValueError):
        raise ValueError(f"{name} must contain integer ids") from None


def confirm_order(account_id: int, order_number: str, frame_ids=None, vendor_name: str = None) -> dict:
    """
    Confirm receipt of an order.

    Args:
        frame_ids: Optional list of item ids; omitted confirms all unreceived items
    """
    ids = _id_list(frame_ids, "frameIds") if frame_ids is not None else None
    return database.confirm_order(account_id, order_number, frame_ids=ids, vendor_name=vendor_name)


def get_receipt_status(account_id: int, order_number: str, vendor_name: str = None):
    return database.get_order_receipt_status(account_id, order_number, vendor_name=vendor_name)


def get_unreceived(account_id: int, order_number: str, vendor_name: str = None) -> dict:
    items = database.get_unreceived_items(account_id, order_number, vendor_name=vendor_name)
    return {"order_number": order_number, "count": len(items), "items": items}


def mark_received(account_id: int, item_ids, received: bool = True) -> dict:
    return database.mark_items_received(account_id, _id_list(item_ids, "itemIds"), bool(received))


TRANSITIONS = {
    "sold": database.mark_item_sold,
    "archive": database.archive_item,
    "restore": database.restore_item,
}


def transition_item(account_id: int, item_id: int, action: str) -> bool:
    """
    Apply a status transition (sold, archive, restore).

    Returns:
        True when the item changed state

    Raises:
        ValueError: For an unknown action
    """
    handler = TRANSITIONS.get(action)
    if handler is None:
        raise ValueError(f"Unknown inventory action: {action}")
    changed = handler(account_id, item_id)
    if changed:
        logger.info(f"Inventory item {item_id} ({account_id}): {action}")
    return changed


def list_inventory(account_id: int, status: str = None) -> list:
    return database.get_inventory(account_id, status=status)


def list_orders(account_id: int, status: str = None) -> list:
    return database.get_orders(account_id, status=status)

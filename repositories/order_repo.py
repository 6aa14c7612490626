from __future__ import annotations

import time

from core.database import db


async def mark_order_paid(order_id: str) -> bool:
    result = await db.orders.update_one(
        {"_id": order_id},
        {"$set": {"status": "confirmed", "payment_status": "completed", "updated_at": int(time.time())}},
    )
    return result.matched_count > 0

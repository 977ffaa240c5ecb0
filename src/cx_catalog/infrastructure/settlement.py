"""DB helper for settlement_events, the outbox read by the payment service.

Called from catalog and offer services within their transaction, so a sale
and its settlement instruction commit or roll back together. The payment
service is told that a sale happened and for how much; capture is its job.
"""
import json

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

_INSERT_SETTLEMENT_SQL = text("""
    INSERT INTO settlement_events
        (event_type, item_id, reference_id, buyer_ref, seller_ref,
         amount_cents, royalty_cents, seller_proceeds_cents, payload)
    VALUES
        (:event_type, :item_id, :reference_id, :buyer_ref, :seller_ref,
         :amount_cents, :royalty_cents, :seller_proceeds_cents, :payload)
""")


async def write_settlement_event(
    db: AsyncSession,
    event_type: str,
    item_id: str,
    reference_id: str,
    buyer_ref: str,
    seller_ref: str | None,
    amount_cents: int,
    royalty_cents: int = 0,
    payload: dict[str, object] | None = None,
) -> None:
    """Insert one row into settlement_events within the caller's transaction.

    seller_ref is None for primary sales (proceeds go to the creator).
    """
    await db.execute(
        _INSERT_SETTLEMENT_SQL,
        {
            "event_type": event_type,
            "item_id": item_id,
            "reference_id": reference_id,
            "buyer_ref": buyer_ref,
            "seller_ref": seller_ref,
            "amount_cents": amount_cents,
            "royalty_cents": royalty_cents,
            "seller_proceeds_cents": amount_cents - royalty_cents,
            "payload": json.dumps(payload or {}, default=str),
        },
    )

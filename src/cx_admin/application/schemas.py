# src/cx_admin/application/schemas.py
from pydantic import BaseModel


class SweepResponse(BaseModel):
    expired_offer_ids: list[str]
    released_item_ids: list[str]
    finalized_auction_ids: list[str] = []

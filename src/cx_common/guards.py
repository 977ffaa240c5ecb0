"""Marketplace kill-switches and the banned-caller check.

Both read settings at call time so an operator can flip a switch through the
environment and restart without touching code.
"""

from config.settings import settings
from src.cx_common.errors import ActorBannedError, FeatureDisabledError

_SWITCHES = {
    "listings": "LISTINGS_ENABLED",
    "trading": "TRADING_ENABLED",
    "offers": "OFFERS_ENABLED",
    "auctions": "AUCTIONS_ENABLED",
}


def require_enabled(feature: str) -> None:
    """Raise FeatureDisabledError when `feature`'s switch is off."""
    if not getattr(settings, _SWITCHES[feature]):
        raise FeatureDisabledError(feature)


def is_banned(actor_ref: str) -> bool:
    banned = {ref.strip().lower() for ref in settings.BANNED_ACTOR_REFS}
    return actor_ref.strip().lower() in banned


def require_not_banned(actor_ref: str) -> None:
    if is_banned(actor_ref):
        raise ActorBannedError()

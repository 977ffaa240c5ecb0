"""FastAPI dependencies: caller identity.

Usage in any router:
    from src.cx_gateway.actor import get_actor_ref, require_admin

    @router.post("/offers")
    async def propose(actor_ref: Annotated[str, Depends(get_actor_ref)]):
        ...

Authentication happens upstream; this service trusts the X-Actor-Ref header
set by the edge proxy. Refs are compared case-insensitively, so they are
normalised to lower case here once.
"""

from fastapi import Depends, Header

from config.settings import settings
from src.cx_common.errors import ActorRequiredError, AdminRequiredError


def normalize_ref(ref: str) -> str:
    return ref.strip().lower()


async def get_actor_ref(
    x_actor_ref: str | None = Header(default=None, alias="X-Actor-Ref"),
) -> str:
    """Return the caller's ref, or raise 401 if the header is missing or blank."""
    if x_actor_ref is None or not x_actor_ref.strip():
        raise ActorRequiredError()
    return normalize_ref(x_actor_ref)


async def require_admin(actor_ref: str = Depends(get_actor_ref)) -> str:
    """Verify the caller is listed in ADMIN_ACTOR_REFS."""
    admins = {normalize_ref(ref) for ref in settings.ADMIN_ACTOR_REFS}
    if actor_ref not in admins:
        raise AdminRequiredError()
    return actor_ref

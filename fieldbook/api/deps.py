"""Shared endpoint dependencies."""
from fastapi import Header


async def get_actor_id(
    x_user_id: int = Header(..., description="ID of the authenticated user making the request"),
) -> int:
    """Acting user, as forwarded by the authentication gateway."""
    return x_user_id

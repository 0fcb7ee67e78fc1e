"""
User endpoints - register the push token that status notifications go to.
"""

from fastapi import APIRouter, Depends

from dymek.models.user import User, UserUpdate
from dymek.services.registry import ServiceRegistry, get_registry

router = APIRouter(prefix="/users", tags=["Users"])


@router.put("/{user_id}", response_model=User)
async def register_user(user_id: str, payload: UserUpdate, registry: ServiceRegistry = Depends(get_registry)):
    return await registry.users.update_or_create_user(user_id, payload.registration_token)


@router.get("/{user_id}", response_model=User)
async def get_user(user_id: str, registry: ServiceRegistry = Depends(get_registry)):
    return await registry.users.get_user(user_id)

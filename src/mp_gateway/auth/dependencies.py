"""FastAPI dependency: get_current_actor.

Usage in any protected router:
    from src.mp_gateway.auth.dependencies import get_current_actor

    @router.get("/protected")
    async def protected(actor: Actor = Depends(get_current_actor)):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_authz.domain.models import Actor
from src.mp_common.database import get_db_session
from src.mp_common.enums import Role
from src.mp_common.errors import AccountDisabledError, InvalidCredentialsError
from src.mp_gateway.auth.jwt_handler import decode_access_token
from src.mp_gateway.user.db_models import ShopModel, UserModel

# Tokens come from the identity service; tokenUrl only drives Swagger's "Authorize" button
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_actor(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Actor:
    """Resolve the bearer token to an Actor (user id, role, owned shops).

    Raises HTTP 401 if the token is missing, invalid, expired, or names an
    unknown user. Raises AccountDisabledError (403) for disabled accounts.
    """
    try:
        payload = decode_access_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    result = await db.execute(select(UserModel).where(UserModel.id == payload["sub"]))
    user = result.scalar_one_or_none()
    if user is None:
        raise _CREDENTIALS_EXCEPTION
    if not user.is_active:
        raise AccountDisabledError()

    try:
        role = Role(user.role)
    except ValueError:
        raise _CREDENTIALS_EXCEPTION from None

    shop_ids: frozenset[str] = frozenset()
    if role is Role.VENDOR:
        shops = await db.execute(
            select(ShopModel.id).where(ShopModel.owner_id == user.id, ShopModel.is_active)
        )
        shop_ids = frozenset(shops.scalars().all())

    return Actor(user_id=user.id, role=role, shop_ids=shop_ids)

from typing import Annotated, List
import uuid
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.models.client import Client
from app.auth.schemas import TokenPayload
from app.models.enums import Role

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")


def _coerce_role(value: Role | str) -> Role:
    return value if isinstance(value, Role) else Role(value)

async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        username = payload.get("sub")
        token_type = payload.get("type")
        if username is None or token_type != "access":
            raise credentials_exception
        token_data = TokenPayload(sub=username, type=token_type)
    except JWTError:
        raise credentials_exception

    stmt = select(User).where(User.email == token_data.sub)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception
    user.role = _coerce_role(user.role)
    return user

async def get_current_active_user(
    current_user: Annotated[User, Depends(get_current_user)]
) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user

class RoleChecker:
    def __init__(self, allowed_roles: List[Role]):
        self.allowed_roles = allowed_roles

    def __call__(self, user: Annotated[User, Depends(get_current_active_user)]):
        user.role = _coerce_role(user.role)
        if user.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted"
            )
        return user

get_current_admin = RoleChecker([Role.ADMIN])
# Trainers manage plans and their own clients; admins can do everything.
get_current_staff = RoleChecker([Role.ADMIN, Role.TRAINER])


async def get_own_client_id(user: User, db: AsyncSession) -> uuid.UUID | None:
    """Client profile id linked to a CLIENT login, if any."""
    result = await db.execute(select(Client.id).where(Client.user_id == user.id))
    return result.scalar_one_or_none()


async def ensure_can_manage_client(user: User, client_id: uuid.UUID, db: AsyncSession) -> None:
    """Trainers may act on their own clients and on clients without a trainer."""
    if _coerce_role(user.role) != Role.TRAINER:
        return
    result = await db.execute(select(Client.trainer_id).where(Client.id == client_id))
    trainer_id = result.scalar_one_or_none()
    if trainer_id not in (None, user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")


async def ensure_can_view_client(user: User, client_id: uuid.UUID, db: AsyncSession) -> None:
    role = _coerce_role(user.role)
    if role == Role.ADMIN:
        return
    if role == Role.TRAINER:
        await ensure_can_manage_client(user, client_id, db)
        return
    if await get_own_client_id(user, db) != client_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")

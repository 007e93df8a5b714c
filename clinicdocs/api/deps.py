from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdocs.core.db import get_db
from clinicdocs.core.security import decode_subject
from clinicdocs.models.user import User, RoleEnum
from clinicdocs.services.actor import Actor


bearer = HTTPBearer(auto_error=False)

async def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    if creds is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    sub = decode_subject(creds.credentials)
    if not sub:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = (await db.execute(select(User).where(User.id == sub))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Inactive user")

    return user

# --- Role-based dependency ---
def require_roles(*roles: RoleEnum):
    async def _guard(user: User = Depends(get_current_user)) -> Actor:
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")
        return Actor.from_user(user)
    return _guard

ISSUERS = (RoleEnum.admin, RoleEnum.doctor)
DISPENSERS = (RoleEnum.admin, RoleEnum.doctor, RoleEnum.pharmacist)

from dataclasses import dataclass

from clinicdocs.models.user import RoleEnum, User


@dataclass(frozen=True)
class Actor:
    """Who is acting, as resolved by the auth dependency."""
    user_id: str
    role: RoleEnum

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(user_id=user.id, role=user.role)

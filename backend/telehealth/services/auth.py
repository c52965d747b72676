from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from telehealth.core.config import settings
from telehealth.models import Role, User
from telehealth.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT
from telehealth.services import security
from telehealth.services.statuses import ensure_statuses


class AuthenticationError(Exception):
    pass


ROLES = {
    ROLE_ADMIN: {
        "name": "Administrator",
        "permissions": ["appointments:read", "appointments:write", "appointments:delete", "availability:read"],
    },
    ROLE_DOCTOR: {
        "name": "Doctor",
        "permissions": ["appointments:read", "appointments:write", "availability:read", "availability:write"],
    },
    ROLE_PATIENT: {
        "name": "Patient",
        "permissions": ["appointments:read", "appointments:book", "availability:read"],
    },
}


def get_role_by_code(session: Session, code: str) -> Optional[Role]:
    statement = select(Role).where(Role.code == code)
    return session.exec(statement).first()


def get_user_by_username(session: Session, username: str) -> Optional[User]:
    statement = select(User).where(User.username == username)
    return session.exec(statement).first()


def authenticate_user(session: Session, username: str, password: str) -> User:
    user = get_user_by_username(session, username)
    if not user or not user.is_active:
        raise AuthenticationError("INVALID_CREDENTIALS")
    if not security.verify_password(password, user.password_hash):
        raise AuthenticationError("INVALID_CREDENTIALS")
    return user


def create_access_token_for_user(session: Session, user: User) -> tuple[str, str, int]:
    role = session.get(Role, user.role_id)
    role_code = role.code if role else ROLE_PATIENT
    access_token = security.create_access_token(str(user.id), {"role": role_code})
    return access_token, role_code, settings.access_token_expire_minutes * 60


def create_user(
    session: Session,
    *,
    username: str,
    password: str,
    role_code: str,
    first_name: str = "",
    last_name: str = "",
    email: Optional[str] = None,
    phone: Optional[str] = None,
) -> User:
    role = get_role_by_code(session, role_code)
    if role is None:
        raise ValueError(f"Unknown role {role_code}")
    user = User(
        username=username,
        password_hash=security.hash_password(password),
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        role_id=role.id,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def ensure_seed_data(session: Session) -> None:
    for code, data in ROLES.items():
        if not get_role_by_code(session, code):
            session.add(Role(code=code, name=data["name"], permissions=data["permissions"]))
            session.commit()
    ensure_statuses(session)
    if not get_user_by_username(session, settings.first_superuser):
        create_user(
            session,
            username=settings.first_superuser,
            password=settings.first_superuser_password,
            role_code=ROLE_ADMIN,
            first_name="System",
            last_name="Administrator",
        )


__all__ = [
    "authenticate_user",
    "create_access_token_for_user",
    "create_user",
    "ensure_seed_data",
    "AuthenticationError",
]

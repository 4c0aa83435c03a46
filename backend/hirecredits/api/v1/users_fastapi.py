"""
FastAPI-Users configuration: user manager, auth backend, schemas.

Recruiter registration also creates the company and its zero credit balance.
"""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import Depends, Request
from fastapi_users import BaseUserManager, FastAPIUsers, IntegerIDMixin, InvalidPasswordException, exceptions, schemas
from fastapi_users.authentication import AuthenticationBackend, BearerTransport, JWTStrategy
from fastapi_users.db import SQLAlchemyUserDatabase
from pydantic import Field, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.company import Company
from ...models.credit_balance import CreditBalance
from ...models.user import User, UserRole
from ...platform.config import settings
from ...platform.database import get_async_db
from ...shared.utils import slugify

logger = logging.getLogger("hirecredits.auth")


# ---- Schemas (extend FastAPI-Users base) ----


class UserRead(schemas.BaseUser[int]):
    full_name: Optional[str] = None
    role: str = UserRole.CANDIDATE.value
    company_id: Optional[int] = None
    created_at: Optional[datetime] = None


class UserCreate(schemas.BaseUserCreate):
    full_name: Optional[str] = None
    role: Literal["recruiter", "candidate"] = "candidate"
    company_name: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def _recruiter_needs_company(self):
        if self.role == "recruiter" and not (self.company_name or "").strip():
            raise ValueError("company_name is required for recruiter accounts")
        return self


class UserUpdate(schemas.BaseUserUpdate):
    full_name: Optional[str] = None


# ---- User Manager ----
class UserManager(IntegerIDMixin, BaseUserManager[User, int]):
    reset_password_token_secret = settings.SECRET_KEY
    verification_token_secret = settings.SECRET_KEY
    reset_password_token_lifetime_seconds = 3600
    verification_token_lifetime_seconds = 86400  # 24 hours

    async def validate_password(self, password: str, user) -> None:
        if len(password) < 8:
            raise InvalidPasswordException(reason="Password should be at least 8 characters")

    async def _create_company(self, session: AsyncSession, company_name: str) -> Company:
        base_slug = slugify(company_name) or "company"
        slug = base_slug
        suffix = 1
        while (await session.execute(select(Company.id).where(Company.slug == slug))).first():
            suffix += 1
            slug = f"{base_slug}-{suffix}"
        company = Company(name=company_name.strip(), slug=slug)
        session.add(company)
        await session.flush()
        # Zero balance, no ledger entries: the ledger sum invariant holds from the start.
        session.add(CreditBalance(company_id=company.id, balance=0))
        await session.flush()
        return company

    async def create(self, user_create, safe: bool = False, request: Optional[Request] = None) -> User:
        await self.validate_password(user_create.password, user_create)

        existing_user = await self.user_db.get_by_email(user_create.email)
        if existing_user is not None:
            raise exceptions.UserAlreadyExists()

        user_dict = (
            user_create.create_update_dict()
            if safe
            else user_create.create_update_dict_superuser()
        )
        password = user_dict.pop("password")
        user_dict["hashed_password"] = self.password_helper.hash(password)

        company_name = (user_dict.pop("company_name", None) or "").strip()
        role = user_dict.get("role") or UserRole.CANDIDATE.value
        user_dict["role"] = role

        company_id = None
        if role == UserRole.RECRUITER.value:
            company = await self._create_company(self.user_db.session, company_name)
            company_id = company.id
        user_dict["company_id"] = company_id

        created_user = await self.user_db.create(user_dict)
        await self.on_after_register(created_user, request)
        return created_user

    async def on_after_register(self, user: User, request: Optional[Request] = None) -> None:
        logger.info("Registered user_id=%s role=%s company_id=%s", user.id, user.role, user.company_id)


async def get_user_db(session: AsyncSession = Depends(get_async_db)):
    yield SQLAlchemyUserDatabase(session, User)


async def get_user_manager(user_db: SQLAlchemyUserDatabase = Depends(get_user_db)):
    yield UserManager(user_db)


# ---- Auth Backend ----
bearer_transport = BearerTransport(tokenUrl="/api/v1/auth/jwt/login")


def get_jwt_strategy() -> JWTStrategy:
    return JWTStrategy(
        secret=settings.SECRET_KEY,
        lifetime_seconds=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=bearer_transport,
    get_strategy=get_jwt_strategy,
)

fastapi_users = FastAPIUsers[User, int](get_user_manager, [auth_backend])

current_active_user = fastapi_users.current_user(active=True)

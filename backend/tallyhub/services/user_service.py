"""
TallyHub Backend — User Service
=================================

What:  Business logic for user records: create, read, list, update, delete,
       existence checks, statistics and credential verification.
Why:   Keeps uniqueness rules, password hashing and pagination math out of
       the route handlers.
How:   Stateless service; every method receives the request's AsyncSession.
       Inputs are expected to have passed tallyhub.validation already; this
       layer only normalizes email case before lookups.

Uniqueness:
    Email uniqueness is checked with a lookup before insert/update so the
    common case gets a clear 409. The UNIQUE index is the real guarantee: if
    two requests race past the lookup, the loser's commit raises
    IntegrityError, which is translated into the same ConflictError.

Transactions:
    Mutating methods (create, update, delete) commit before returning, so the
    change is durable before the route builds its response. The request
    session's own commit at teardown then has nothing left to write.

Passwords:
    Hashed with bcrypt before the row is created. Outward-facing methods
    return UserResponse, which has no password field. Only
    get_user_by_email() and verify_credentials() hand out the ORM row.
"""

import logging
import math
import uuid
from datetime import timedelta
from typing import Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tallyhub.database import utcnow
from tallyhub.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    TallyHubError,
    ValidationError,
)
from tallyhub.models.user import User
from tallyhub.schemas.user import (
    Pagination,
    UserListResponse,
    UserResponse,
    UserStatistics,
)
from tallyhub.security import hash_password, verify_password
from tallyhub.validation import coerce_user_id, normalize_email

logger = logging.getLogger(__name__)

UserId = Union[str, uuid.UUID]

EMAIL_IN_USE = "Email already in use"
EMAIL_IN_USE_BY_OTHER = "Email already in use by another user"
USER_NOT_FOUND = "User not found"

# OFFSET is a signed 64-bit value on every supported dialect
MAX_SQL_OFFSET = 2**63 - 1


class UserService:
    """
    Business logic layer for user operations.

    Error Handling Strategy:
        Our own exceptions (ValidationError, NotFoundError, ConflictError)
        propagate unchanged. IntegrityError on the email index becomes
        ConflictError. Any other SQLAlchemy error is logged and wrapped in
        DatabaseError so the client gets a generic 500.
    """

    async def create_user(
        self,
        db: AsyncSession,
        name: str,
        email: str,
        password: str,
        bcrypt_rounds: int = 10,
    ) -> UserResponse:
        """
        Create a user with a hashed password.

        Args:
            db: Async database session
            name, email, password: validated input (see validate_new_user)
            bcrypt_rounds: bcrypt work factor from settings

        Returns:
            The created user, without password

        Raises:
            ConflictError: email already registered (case-insensitive)
            DatabaseError: unexpected database failure
        """
        name = name.strip()
        email = normalize_email(email)

        try:
            if await self._find_by_email(db, email) is not None:
                raise ConflictError(message=EMAIL_IN_USE, context={"email": email})

            password_hash = await hash_password(password, rounds=bcrypt_rounds)
            now = utcnow()
            user = User(
                id=uuid.uuid4(),
                name=name,
                email=email,
                password_hash=password_hash,
                created_at=now,
                updated_at=now,
            )
            db.add(user)
            await db.commit()

        except IntegrityError as e:
            logger.warning("Duplicate email on insert (concurrent signup): %s", email)
            raise ConflictError(
                message=EMAIL_IN_USE,
                context={"email": email, "error_type": type(e).__name__},
            )
        except TallyHubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error creating user: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the user. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("User created: %s", user.id)
        return UserResponse.model_validate(user)

    async def get_user_by_id(self, db: AsyncSession, user_id: UserId) -> UserResponse:
        """
        Fetch a user by id.

        Raises:
            ValidationError: user_id is not a well-formed UUID
            NotFoundError:   no such user
        """
        user = await self._get_or_404(db, coerce_user_id(user_id))
        return UserResponse.model_validate(user)

    async def get_user_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        """
        Case-insensitive exact lookup by email.

        Returns the ORM row (including password_hash) for internal use, or None.
        """
        try:
            return await self._find_by_email(db, normalize_email(email))
        except SQLAlchemyError as e:
            logger.error("Database error looking up email: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not look up the user. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def list_users(self, db: AsyncSession, page: int = 1, limit: int = 10) -> UserListResponse:
        """
        Offset-paginated listing, newest first.

        Query plan:
            SELECT ... ORDER BY created_at DESC LIMIT :limit OFFSET :offset
            SELECT count(*) FROM users
        """
        # Pages far past the end read as empty instead of overflowing the driver
        offset = min((page - 1) * limit, MAX_SQL_OFFSET)
        try:
            result = await db.execute(
                select(User)
                .order_by(User.created_at.desc(), User.id.desc())
                .offset(offset)
                .limit(limit)
            )
            users = list(result.scalars().all())
            total = await db.scalar(select(func.count()).select_from(User)) or 0
        except SQLAlchemyError as e:
            logger.error("Database error listing users: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve users. Please try again.",
                context={"error_type": type(e).__name__},
            )

        pages = math.ceil(total / limit) if total else 0
        return UserListResponse(
            users=[UserResponse.model_validate(u) for u in users],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=pages,
                has_next=page < pages,
                has_prev=page > 1,
            ),
        )

    async def update_user(
        self,
        db: AsyncSession,
        user_id: UserId,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> UserResponse:
        """
        Partially update name and/or email. Password is not updatable here.

        A call with neither field is a no-op that returns the current record.

        Raises:
            ValidationError: malformed id
            NotFoundError:   no such user
            ConflictError:   email belongs to another user
        """
        user = await self._get_or_404(db, coerce_user_id(user_id))

        try:
            if email is not None:
                email = normalize_email(email)
                if email != user.email:
                    holder = await self._find_by_email(db, email)
                    if holder is not None and holder.id != user.id:
                        raise ConflictError(
                            message=EMAIL_IN_USE_BY_OTHER,
                            context={"email": email, "user_id": str(user.id)},
                        )
                    user.email = email

            if name is not None:
                user.name = name.strip()

            if db.is_modified(user):
                user.updated_at = utcnow()
                await db.commit()
                logger.info("User updated: %s", user.id)

        except IntegrityError as e:
            raise ConflictError(
                message=EMAIL_IN_USE_BY_OTHER,
                context={"user_id": str(user.id), "error_type": type(e).__name__},
            )
        except TallyHubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error updating user %s: %s", user.id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the user. Please try again.",
                context={"user_id": str(user.id)},
            )

        return UserResponse.model_validate(user)

    async def delete_user(self, db: AsyncSession, user_id: UserId) -> None:
        """
        Delete a user.

        Raises:
            ValidationError: malformed id
            NotFoundError:   no such user
        """
        uid = coerce_user_id(user_id)
        try:
            result = await db.execute(delete(User).where(User.id == uid))
            await db.commit()
        except SQLAlchemyError as e:
            logger.error("Database error deleting user %s: %s", uid, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not delete the user. Please try again.",
                context={"user_id": str(uid)},
            )
        if result.rowcount == 0:
            raise NotFoundError(message=USER_NOT_FOUND, resource="user", resource_id=str(uid))
        logger.info("User deleted: %s", uid)

    async def user_exists(self, db: AsyncSession, user_id: UserId) -> bool:
        """True when a user with this id exists. Malformed ids and lookup failures are False."""
        try:
            uid = coerce_user_id(user_id)
        except ValidationError:
            return False
        try:
            found = await db.scalar(select(User.id).where(User.id == uid))
        except SQLAlchemyError as e:
            logger.error("Database error checking user %s: %s", uid, str(e))
            return False
        return found is not None

    async def get_statistics(self, db: AsyncSession) -> UserStatistics:
        """
        Registration counts, computed at request time.

        Boundaries (UTC):
            today: midnight today
            week:  midnight today minus 7 days
            month: midnight on the first of the current month
        """
        now = utcnow()
        start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_week = start_of_today - timedelta(days=7)
        start_of_month = start_of_today.replace(day=1)

        def created_since(since):
            return select(func.count()).select_from(User).where(User.created_at >= since)

        try:
            total = await db.scalar(select(func.count()).select_from(User))
            today = await db.scalar(created_since(start_of_today))
            week = await db.scalar(created_since(start_of_week))
            month = await db.scalar(created_since(start_of_month))
        except SQLAlchemyError as e:
            logger.error("Database error computing user statistics: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not compute user statistics. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return UserStatistics(
            total_users=total or 0,
            users_today=today or 0,
            users_this_week=week or 0,
            users_this_month=month or 0,
        )

    async def verify_credentials(self, db: AsyncSession, email: str, password: str) -> Optional[User]:
        """Return the user when `password` matches the stored hash, otherwise None."""
        user = await self.get_user_by_email(db, email)
        if user is None:
            return None
        if not await verify_password(password, user.password_hash):
            return None
        return user

    # ── Internal helpers ──────────────────────────────────────────────────

    async def _find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def _get_or_404(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        try:
            result = await db.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching user %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve the user. Please try again.",
                context={"user_id": str(user_id)},
            )
        if user is None:
            raise NotFoundError(message=USER_NOT_FOUND, resource="user", resource_id=str(user_id))
        return user


user_service = UserService()

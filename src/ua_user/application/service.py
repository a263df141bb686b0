"""UserService — registration, login and CRUD over the users store + cache.

The store is authoritative. The cache (optional) is a read-through shadow:
  - reads:  cache → store on miss → populate cache
  - writes: store first, then best-effort cache refresh/invalidate

Cache calls are awaited inline; any CacheError is logged and swallowed so a
cache outage never fails an operation whose store write succeeded. Nothing
here retries, locks, or spawns background work.
"""

import logging
from datetime import timedelta

from pydantic import ValidationError

from src.ua_common.errors import (
    AppError,
    EmailExistsError,
    InvalidCredentialsError,
    PersistenceError,
    UserNotFoundError,
)
from src.ua_common.redis_log import log_meta
from src.ua_gateway.auth.jwt_handler import issue_token
from src.ua_gateway.auth.password import hash_password, verify_password
from src.ua_user.application.schemas import UserCacheEntry
from src.ua_user.domain.cache import CacheError, UserCacheProtocol, user_cache_key
from src.ua_user.domain.models import PagedUsers, User
from src.ua_user.domain.naming import normalize_name
from src.ua_user.domain.repository import UserRepositoryProtocol

logger = logging.getLogger(__name__)

USER_CACHE_TTL = timedelta(minutes=10)

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100


class UserService:
    def __init__(
        self,
        repo: UserRepositoryProtocol,
        cache: UserCacheProtocol | None = None,
    ) -> None:
        self._repo = repo
        self._cache = cache

    # ------------------------------------------------------------------
    # Auth & single read
    # ------------------------------------------------------------------

    async def register(self, name: str, email: str, password: str) -> User:
        """Create a user after the email pre-check; warms the cache on success.

        The pre-check is read-then-write without locking. A concurrent insert
        that slips past it is caught by the store's unique constraint and
        surfaces as the same EmailExistsError.
        """
        if await self._email_taken(email):
            logger.warning("register email exists", extra=log_meta(email=email))
            raise EmailExistsError()

        try:
            password_hash = hash_password(password)
        except AppError as exc:
            logger.error("register hash error", extra=log_meta(email=email, err=exc.message))
            raise

        user = User(name=normalize_name(name), email=email, password_hash=password_hash)
        try:
            user = await self._repo.create(user)
        except AppError as exc:
            logger.error(
                "register db create error", extra=log_meta(email=email, err=exc.message)
            )
            raise

        await self._cache_set(user)
        logger.info("register success", extra=log_meta(user_id=user.id, email=user.email))
        return user

    async def login(self, email: str, password: str, secret: str, ttl: timedelta) -> str:
        """Validate credentials and return a signed token.

        Note: "no such email", "store error" and "wrong password" all raise the
        same InvalidCredentialsError — prevents email enumeration.
        """
        try:
            user = await self._repo.find_by_email(email)
        except AppError as exc:
            logger.warning("login lookup error", extra=log_meta(email=email, err=exc.message))
            raise InvalidCredentialsError() from None

        if user is None:
            logger.warning("login user not found", extra=log_meta(email=email))
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash or ""):
            logger.warning("login wrong password", extra=log_meta(email=email))
            raise InvalidCredentialsError()

        try:
            token = issue_token(user.id, user.email, secret, ttl)
        except AppError as exc:
            logger.error(
                "login token sign error", extra=log_meta(email=user.email, err=exc.message)
            )
            raise

        logger.info("login success", extra=log_meta(user_id=user.id, email=user.email))
        return token

    async def get_by_id(self, user_id: int) -> User:
        """Cache-aside read. A cache hit never touches the store."""
        cached = await self._cache_get(user_id)
        if cached is not None:
            return cached

        try:
            user = await self._repo.find_by_id(user_id)
        except AppError as exc:
            logger.error(
                "db fetch error in get_by_id", extra=log_meta(user_id=user_id, err=exc.message)
            )
            raise
        if user is None:
            logger.warning("db fetch miss in get_by_id", extra=log_meta(user_id=user_id))
            raise UserNotFoundError(user_id)

        logger.info("db fetch success in get_by_id", extra=log_meta(user_id=user_id))
        await self._cache_set(user)
        return user

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_user(self, name: str, email: str, password: str) -> User:
        """Admin create — same rules as register."""
        logger.info("create_user called", extra=log_meta(email=email))
        return await self.register(name, email, password)

    async def get_user(self, user_id: int) -> User:
        logger.info("get_user called", extra=log_meta(user_id=user_id))
        return await self.get_by_id(user_id)

    async def update_user(
        self,
        user_id: int,
        *,
        name: str | None = None,
        email: str | None = None,
        password: str | None = None,
    ) -> User:
        """Partial update. All checks run before the store is written."""
        logger.info("update_user called", extra=log_meta(user_id=user_id))

        try:
            user = await self._repo.find_by_id(user_id)
        except AppError as exc:
            logger.error(
                "update_user load error", extra=log_meta(user_id=user_id, err=exc.message)
            )
            raise
        if user is None:
            logger.warning("update_user not found", extra=log_meta(user_id=user_id))
            raise UserNotFoundError(user_id)

        if name is not None:
            user.name = normalize_name(name)

        if email is not None and email != user.email:
            if await self._email_taken(email):
                logger.warning("update_user email exists", extra=log_meta(email=email))
                raise EmailExistsError()
            user.email = email

        if password is not None:
            try:
                user.password_hash = hash_password(password)
            except AppError as exc:
                logger.error(
                    "update_user hash error", extra=log_meta(user_id=user_id, err=exc.message)
                )
                raise

        try:
            user = await self._repo.update(user)
        except AppError as exc:
            logger.error(
                "update_user db error", extra=log_meta(user_id=user_id, err=exc.message)
            )
            raise

        await self._cache_delete(user_id)
        await self._cache_set(user)
        logger.info("update_user cache refreshed", extra=log_meta(key=user_cache_key(user_id)))
        return user

    async def delete_user(self, user_id: int) -> None:
        logger.info("delete_user called", extra=log_meta(user_id=user_id))
        try:
            await self._repo.delete(user_id)
        except AppError as exc:
            logger.error(
                "delete_user db error", extra=log_meta(user_id=user_id, err=exc.message)
            )
            raise

        await self._cache_delete(user_id)
        logger.info("delete_user success", extra=log_meta(user_id=user_id))

    async def list_users(self, page: int, limit: int) -> PagedUsers:
        logger.info("list_users called", extra=log_meta(page=page, limit=limit))

        if page < 1:
            page = 1
        if limit <= 0 or limit > MAX_PAGE_LIMIT:
            limit = DEFAULT_PAGE_LIMIT
        offset = (page - 1) * limit

        try:
            items, total = await self._repo.list_page(offset, limit)
        except AppError as exc:
            logger.error("list_users db error", extra=log_meta(err=exc.message))
            raise

        logger.info("list_users success", extra=log_meta(count=len(items), total=total))
        return PagedUsers(items=items, total=total, page=page, limit=limit)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _email_taken(self, email: str) -> bool:
        """True only when the lookup succeeds and finds a row."""
        try:
            return await self._repo.find_by_email(email) is not None
        except PersistenceError as exc:
            # Unique constraint still guards the write that follows.
            logger.warning(
                "email pre-check lookup error", extra=log_meta(email=email, err=exc.message)
            )
            return False

    async def _cache_get(self, user_id: int) -> User | None:
        if self._cache is None:
            return None
        key = user_cache_key(user_id)
        try:
            raw = await self._cache.get(key)
        except CacheError as exc:
            logger.error("cache GET error", extra=log_meta(key=key, err=exc))
            return None
        if raw is None:
            logger.info("cache MISS", extra=log_meta(key=key, user_id=user_id))
            return None
        try:
            user = UserCacheEntry.from_json(raw).to_user()
        except ValidationError:
            logger.warning("cache decode failed", extra=log_meta(key=key))
            return None
        logger.info("cache HIT", extra=log_meta(key=key, user_id=user_id))
        return user

    async def _cache_set(self, user: User) -> None:
        if self._cache is None or user.id is None:
            return
        key = user_cache_key(user.id)
        try:
            await self._cache.set(key, UserCacheEntry.from_user(user).to_json(), USER_CACHE_TTL)
        except CacheError as exc:
            logger.error("cache SET error", extra=log_meta(key=key, err=exc))
            return
        logger.info("cache SET", extra=log_meta(key=key, ttl=USER_CACHE_TTL))

    async def _cache_delete(self, user_id: int) -> None:
        if self._cache is None:
            return
        key = user_cache_key(user_id)
        try:
            await self._cache.delete(key)
        except CacheError as exc:
            logger.error("cache DEL error", extra=log_meta(key=key, err=exc))

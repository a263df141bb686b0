"""UserRepository — concrete implementation of UserRepositoryProtocol.

Holds the shared async_sessionmaker and opens one short session per call;
writes run inside `session.begin()` so each call commits (or rolls back) on
its own. There are no multi-entity transactions.

Store errors are translated at this boundary:
  IntegrityError on uq_users_email  -> EmailExistsError
  0 rows on update/delete           -> UserNotFoundError
  any other SQLAlchemyError         -> PersistenceError
"""

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.ua_common.database import async_session_factory
from src.ua_common.datetime_utils import utc_now
from src.ua_common.errors import EmailExistsError, PersistenceError, UserNotFoundError
from src.ua_user.domain.models import User
from src.ua_user.infrastructure.db_models import UserModel

_UNIQUE_VIOLATION = "23505"


def _to_domain(model: UserModel) -> User:
    return User(
        id=model.id,
        name=model.name,
        email=model.email,
        password_hash=model.password_hash,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == _UNIQUE_VIOLATION
    return "unique" in str(orig).lower()


def _translate(op: str, exc: SQLAlchemyError) -> Exception:
    if isinstance(exc, IntegrityError) and _is_unique_violation(exc):
        return EmailExistsError()
    return PersistenceError(f"{op}: {exc}")


class UserRepository:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    ) -> None:
        self._session_factory = session_factory

    async def create(self, user: User) -> User:
        now = utc_now()
        model = UserModel(
            name=user.name,
            email=user.email,
            password_hash=user.password_hash,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as db, db.begin():
                db.add(model)
                await db.flush()  # populates model.id
        except SQLAlchemyError as exc:
            raise _translate("create user", exc) from exc
        return _to_domain(model)

    async def find_by_email(self, email: str) -> User | None:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(UserModel).where(UserModel.email == email))
                model = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise _translate("find user by email", exc) from exc
        return _to_domain(model) if model is not None else None

    async def find_by_id(self, user_id: int) -> User | None:
        try:
            async with self._session_factory() as db:
                model = await db.get(UserModel, user_id)
        except SQLAlchemyError as exc:
            raise _translate("find user by id", exc) from exc
        return _to_domain(model) if model is not None else None

    async def update(self, user: User) -> User:
        if user.id is None:
            raise PersistenceError("update user: missing id")
        try:
            async with self._session_factory() as db, db.begin():
                model = await db.get(UserModel, user.id)
                if model is None:
                    raise UserNotFoundError(user.id)
                model.name = user.name
                model.email = user.email
                if user.password_hash:
                    model.password_hash = user.password_hash
                model.updated_at = utc_now()
        except SQLAlchemyError as exc:
            raise _translate("update user", exc) from exc
        return _to_domain(model)

    async def delete(self, user_id: int) -> None:
        try:
            async with self._session_factory() as db, db.begin():
                result = await db.execute(delete(UserModel).where(UserModel.id == user_id))
                deleted = result.rowcount
        except SQLAlchemyError as exc:
            raise _translate("delete user", exc) from exc
        if deleted == 0:
            raise UserNotFoundError(user_id)

    async def list_page(self, offset: int, limit: int) -> tuple[list[User], int]:
        try:
            async with self._session_factory() as db:
                total = await db.scalar(select(func.count()).select_from(UserModel))
                result = await db.scalars(
                    select(UserModel).order_by(UserModel.id.asc()).offset(offset).limit(limit)
                )
                models = result.all()
        except SQLAlchemyError as exc:
            raise _translate("list users", exc) from exc
        return [_to_domain(m) for m in models], int(total or 0)

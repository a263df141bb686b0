"""Unit tests for UserService (mocked repository and cache)."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from src.ua_common.errors import (
    EmailExistsError,
    HashingError,
    InvalidCredentialsError,
    InvalidTokenError,
    PersistenceError,
    TokenSigningError,
    UserNotFoundError,
)
from src.ua_gateway.auth.jwt_handler import verify_token
from src.ua_gateway.auth.password import hash_password
from src.ua_user.application.schemas import UserCacheEntry
from src.ua_user.application.service import USER_CACHE_TTL, UserService
from src.ua_user.domain.cache import CacheError
from src.ua_user.domain.models import User
from src.ua_user.infrastructure.redis_cache import RedisUserCache

SECRET = "service-test-secret"
_HASH_PATH = "src.ua_user.application.service.hash_password"


def _make_user(
    user_id: int = 1,
    name: str = "Alice",
    email: str = "alice@example.com",
    password_hash: str = "$2b$12$fakehash",
) -> User:
    now = datetime.now(UTC)
    return User(
        id=user_id,
        name=name,
        email=email,
        password_hash=password_hash,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def repo() -> AsyncMock:
    mock = AsyncMock()
    mock.find_by_email.return_value = None
    return mock


@pytest.fixture
def cache() -> AsyncMock:
    mock = AsyncMock()
    mock.get.return_value = None
    return mock


@pytest.fixture
def service(repo: AsyncMock, cache: AsyncMock) -> UserService:
    return UserService(repo, cache)


def _echo_create(user: User) -> User:
    """Simulate the store assigning id + timestamps."""
    now = datetime.now(UTC)
    user.id = 7
    user.created_at = now
    user.updated_at = now
    return user


def test_cache_ttl_is_ten_minutes() -> None:
    assert USER_CACHE_TTL == timedelta(minutes=10)


class TestRegister:
    async def test_existing_email_raises_without_insert_or_cache_write(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.find_by_email.return_value = _make_user()

        with pytest.raises(EmailExistsError):
            await service.register("bob", "alice@example.com", "secret1")

        repo.create.assert_not_called()
        cache.set.assert_not_called()

    async def test_success_normalizes_name_and_warms_cache(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.create.side_effect = _echo_create

        with patch(_HASH_PATH, return_value="$2b$12$hashed"):
            user = await service.register("  aHMED ", "ahmed@example.com", "secret1")

        assert user.id == 7
        assert user.name == "AHMED"
        assert user.password_hash == "$2b$12$hashed"

        created: User = repo.create.call_args.args[0]
        assert created.name == "AHMED"
        assert created.email == "ahmed@example.com"

        cache.set.assert_awaited_once()
        key, value, ttl = cache.set.call_args.args
        assert key == "user:7"
        assert ttl == timedelta(minutes=10)
        cached = UserCacheEntry.from_json(value)
        assert cached.id == 7
        assert cached.name == "AHMED"
        assert "password" not in value
        assert "$2b$" not in value

    async def test_stores_real_bcrypt_hash(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.create.side_effect = _echo_create

        user = await service.register("carol", "carol@example.com", "secret1")

        assert user.password_hash is not None
        assert user.password_hash != "secret1"
        assert user.password_hash.startswith("$2")

    async def test_hashing_failure_aborts_before_insert(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        with patch(_HASH_PATH, side_effect=HashingError()), pytest.raises(HashingError):
            await service.register("bob", "bob@example.com", "secret1")
        repo.create.assert_not_called()

    async def test_late_unique_violation_surfaces_as_email_exists(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.create.side_effect = EmailExistsError()

        with patch(_HASH_PATH, return_value="h"), pytest.raises(EmailExistsError):
            await service.register("bob", "bob@example.com", "secret1")
        cache.set.assert_not_called()

    async def test_insert_failure_raises_persistence_error(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.create.side_effect = PersistenceError("create user: connection reset")

        with patch(_HASH_PATH, return_value="h"), pytest.raises(PersistenceError):
            await service.register("bob", "bob@example.com", "secret1")

    async def test_precheck_lookup_error_does_not_block_insert(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.find_by_email.side_effect = PersistenceError("find user by email: timeout")
        repo.create.side_effect = _echo_create

        with patch(_HASH_PATH, return_value="h"):
            user = await service.register("bob", "bob@example.com", "secret1")

        assert user.id == 7
        repo.create.assert_awaited_once()

    async def test_cache_failure_does_not_fail_registration(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.create.side_effect = _echo_create
        cache.set.side_effect = CacheError("SET user:7: connection refused")

        with patch(_HASH_PATH, return_value="h"):
            user = await service.register("bob", "bob@example.com", "secret1")

        assert user.id == 7

    async def test_without_cache(self, repo: AsyncMock) -> None:
        repo.create.side_effect = _echo_create
        service = UserService(repo)

        with patch(_HASH_PATH, return_value="h"):
            user = await service.register("bob", "bob@example.com", "secret1")

        assert user.name == "Bob"

    async def test_create_user_is_register(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.create.side_effect = _echo_create

        with patch(_HASH_PATH, return_value="h"):
            user = await service.create_user("dave", "dave@example.com", "secret1")

        assert user.name == "Dave"
        assert cache.set.call_args.args[0] == "user:7"


class TestLogin:
    async def test_unknown_email_and_wrong_password_are_indistinguishable(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        ttl = timedelta(minutes=5)

        repo.find_by_email.return_value = None
        with pytest.raises(InvalidCredentialsError) as unknown:
            await service.login("nobody@example.com", "secret1", SECRET, ttl)

        repo.find_by_email.return_value = _make_user(password_hash=hash_password("secret1"))
        with pytest.raises(InvalidCredentialsError) as wrong:
            await service.login("alice@example.com", "WRONG", SECRET, ttl)

        assert type(unknown.value) is type(wrong.value)
        assert unknown.value.code == wrong.value.code
        assert unknown.value.message == wrong.value.message
        assert unknown.value.http_status == wrong.value.http_status

    async def test_store_error_collapses_to_invalid_credentials(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.find_by_email.side_effect = PersistenceError("find user by email: boom")

        with pytest.raises(InvalidCredentialsError):
            await service.login("alice@example.com", "secret1", SECRET, timedelta(minutes=5))

    async def test_success_issues_verifiable_token(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.find_by_email.return_value = _make_user(
            user_id=42, password_hash=hash_password("secret1")
        )

        token = await service.login(
            "alice@example.com", "secret1", SECRET, timedelta(minutes=5)
        )

        claims = verify_token(token, SECRET)
        assert claims.subject == 42
        assert claims.email == "alice@example.com"

    async def test_token_rejected_after_expiry(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.find_by_email.return_value = _make_user(password_hash=hash_password("secret1"))

        token = await service.login(
            "alice@example.com", "secret1", SECRET, timedelta(seconds=-1)
        )

        with pytest.raises(InvalidTokenError):
            verify_token(token, SECRET)

    async def test_signing_failure(self, service: UserService, repo: AsyncMock) -> None:
        repo.find_by_email.return_value = _make_user(password_hash=hash_password("secret1"))
        # The HMAC signer rejects PEM-looking key material
        bad_secret = "-----BEGIN PUBLIC KEY-----\nabc\n-----END PUBLIC KEY-----"

        with pytest.raises(TokenSigningError) as exc_info:
            await service.login("alice@example.com", "secret1", bad_secret, timedelta(minutes=5))

        assert exc_info.value.code == 9004


class TestGetById:
    async def test_cache_hit_never_calls_store(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        cache.get.return_value = UserCacheEntry.from_user(_make_user(user_id=3)).to_json()

        user = await service.get_by_id(3)

        assert user.id == 3
        assert user.email == "alice@example.com"
        assert user.password_hash is None
        cache.get.assert_awaited_once_with("user:3")
        assert repo.find_by_id.call_count == 0
        cache.set.assert_not_called()

    async def test_cache_miss_reads_store_once_and_populates(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.find_by_id.return_value = _make_user(user_id=3)

        user = await service.get_by_id(3)

        assert user.id == 3
        assert repo.find_by_id.call_count == 1
        repo.find_by_id.assert_awaited_with(3)
        cache.set.assert_awaited_once()
        key, _value, ttl = cache.set.call_args.args
        assert key == "user:3"
        assert ttl == USER_CACHE_TTL

    async def test_undecodable_cache_value_is_a_miss(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        cache.get.return_value = "{not json"
        repo.find_by_id.return_value = _make_user(user_id=3)

        user = await service.get_by_id(3)

        assert user.id == 3
        assert repo.find_by_id.call_count == 1

    async def test_non_utf8_cache_bytes_are_a_miss(self, repo: AsyncMock) -> None:
        client = AsyncMock()
        client.get.return_value = b"\xff\xfe garbage"
        service = UserService(repo, RedisUserCache(client))
        repo.find_by_id.return_value = _make_user(user_id=3)

        user = await service.get_by_id(3)

        assert user.id == 3
        repo.find_by_id.assert_awaited_once_with(3)

    async def test_cache_get_error_falls_through_to_store(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        cache.get.side_effect = CacheError("GET user:3: timeout")
        repo.find_by_id.return_value = _make_user(user_id=3)

        user = await service.get_by_id(3)

        assert user.id == 3

    async def test_cache_set_error_is_swallowed(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        cache.set.side_effect = CacheError("SET user:3: timeout")
        repo.find_by_id.return_value = _make_user(user_id=3)

        assert (await service.get_by_id(3)).id == 3

    async def test_not_found(self, service: UserService, repo: AsyncMock, cache: AsyncMock) -> None:
        repo.find_by_id.return_value = None

        with pytest.raises(UserNotFoundError):
            await service.get_by_id(99)
        cache.set.assert_not_called()

    async def test_store_error_propagates(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.find_by_id.side_effect = PersistenceError("find user by id: boom")

        with pytest.raises(PersistenceError):
            await service.get_by_id(3)

    async def test_without_cache_reads_store(self, repo: AsyncMock) -> None:
        repo.find_by_id.return_value = _make_user(user_id=3)

        user = await UserService(repo).get_user(3)

        assert user.id == 3
        assert repo.find_by_id.call_count == 1


class TestUpdateUser:
    async def test_name_only_renormalizes_and_refreshes_cache(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        current = _make_user(user_id=5, password_hash="$2b$12$original")
        repo.find_by_id.return_value = current
        repo.update.side_effect = lambda u: u

        with patch(_HASH_PATH) as hasher:
            user = await service.update_user(5, name="  zed")

        assert user.name == "Zed"
        assert user.email == "alice@example.com"
        assert user.password_hash == "$2b$12$original"
        hasher.assert_not_called()
        repo.find_by_email.assert_not_called()

        cache.delete.assert_awaited_once_with("user:5")
        cache.set.assert_awaited_once()
        assert cache.set.call_args.args[0] == "user:5"
        assert cache.set.call_args.args[2] == USER_CACHE_TTL
        # delete happens before set
        assert [c[0] for c in cache.method_calls] == ["delete", "set"]

    async def test_email_taken_by_other_user_aborts_before_update(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.find_by_id.return_value = _make_user(user_id=5)
        repo.find_by_email.return_value = _make_user(user_id=6, email="bob@example.com")

        with pytest.raises(EmailExistsError):
            await service.update_user(5, email="bob@example.com")

        repo.update.assert_not_called()
        cache.delete.assert_not_called()
        cache.set.assert_not_called()

    async def test_same_email_skips_uniqueness_check(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.find_by_id.return_value = _make_user(user_id=5)
        repo.update.side_effect = lambda u: u

        await service.update_user(5, email="alice@example.com")

        repo.find_by_email.assert_not_called()
        repo.update.assert_awaited_once()

    async def test_new_free_email_is_applied(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.find_by_id.return_value = _make_user(user_id=5)
        repo.update.side_effect = lambda u: u

        user = await service.update_user(5, email="new@example.com")

        assert user.email == "new@example.com"
        repo.find_by_email.assert_awaited_once_with("new@example.com")

    async def test_password_is_rehashed(self, service: UserService, repo: AsyncMock) -> None:
        repo.find_by_id.return_value = _make_user(user_id=5)
        repo.update.side_effect = lambda u: u

        with patch(_HASH_PATH, return_value="$2b$12$new"):
            user = await service.update_user(5, password="newsecret")

        assert user.password_hash == "$2b$12$new"
        assert repo.update.call_args.args[0].password_hash == "$2b$12$new"

    async def test_hashing_failure_aborts_before_update(
        self, service: UserService, repo: AsyncMock
    ) -> None:
        repo.find_by_id.return_value = _make_user(user_id=5)

        with patch(_HASH_PATH, side_effect=HashingError()), pytest.raises(HashingError):
            await service.update_user(5, password="newsecret")

        repo.update.assert_not_called()

    async def test_loads_from_store_not_cache(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.find_by_id.return_value = _make_user(user_id=5)
        repo.update.side_effect = lambda u: u

        await service.update_user(5, name="x y")

        cache.get.assert_not_called()
        repo.find_by_id.assert_awaited_once_with(5)

    async def test_not_found(self, service: UserService, repo: AsyncMock) -> None:
        repo.find_by_id.return_value = None

        with pytest.raises(UserNotFoundError):
            await service.update_user(5, name="zed")
        repo.update.assert_not_called()

    async def test_store_failure_raises_persistence_error(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.find_by_id.return_value = _make_user(user_id=5)
        repo.update.side_effect = PersistenceError("update user: boom")

        with pytest.raises(PersistenceError):
            await service.update_user(5, name="zed")
        cache.set.assert_not_called()

    async def test_cache_failures_do_not_fail_update(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.find_by_id.return_value = _make_user(user_id=5)
        repo.update.side_effect = lambda u: u
        cache.delete.side_effect = CacheError("DEL user:5: down")
        cache.set.side_effect = CacheError("SET user:5: down")

        user = await service.update_user(5, name="zed")

        assert user.name == "Zed"
        cache.set.assert_awaited_once()


class TestDeleteUser:
    async def test_missing_user_raises_not_found(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        repo.delete.side_effect = UserNotFoundError(404)

        with pytest.raises(UserNotFoundError):
            await service.delete_user(404)
        cache.delete.assert_not_called()

    async def test_success_removes_cache_key(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        await service.delete_user(5)

        repo.delete.assert_awaited_once_with(5)
        cache.delete.assert_awaited_once_with("user:5")

    async def test_cache_failure_is_swallowed(
        self, service: UserService, repo: AsyncMock, cache: AsyncMock
    ) -> None:
        cache.delete.side_effect = CacheError("DEL user:5: down")

        await service.delete_user(5)

        repo.delete.assert_awaited_once_with(5)


class TestListUsers:
    async def test_clamps_page_and_limit(self, service: UserService, repo: AsyncMock) -> None:
        repo.list_page.return_value = ([], 0)

        result = await service.list_users(page=0, limit=1000)

        repo.list_page.assert_awaited_once_with(0, 10)
        assert result.page == 1
        assert result.limit == 10

    @pytest.mark.parametrize(
        ("page", "limit", "offset", "eff_limit"),
        [
            (1, 10, 0, 10),
            (3, 20, 40, 20),
            (-5, 0, 0, 10),
            (2, -1, 10, 10),
            (2, 100, 100, 100),
            (2, 101, 10, 10),
        ],
    )
    async def test_offset_computation(
        self,
        service: UserService,
        repo: AsyncMock,
        page: int,
        limit: int,
        offset: int,
        eff_limit: int,
    ) -> None:
        repo.list_page.return_value = ([], 0)

        await service.list_users(page, limit)

        repo.list_page.assert_awaited_once_with(offset, eff_limit)

    async def test_returns_envelope(self, service: UserService, repo: AsyncMock) -> None:
        users = [_make_user(user_id=i, email=f"u{i}@example.com") for i in (1, 2)]
        repo.list_page.return_value = (users, 12)

        result = await service.list_users(2, 2)

        assert [u.id for u in result.items] == [1, 2]
        assert result.total == 12
        assert result.page == 2
        assert result.limit == 2

    async def test_store_error_propagates(self, service: UserService, repo: AsyncMock) -> None:
        repo.list_page.side_effect = PersistenceError("list users: boom")

        with pytest.raises(PersistenceError):
            await service.list_users(1, 10)

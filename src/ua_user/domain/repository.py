"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Error contract for implementations:
  - unique violation on email      -> EmailExistsError
  - update/delete of a missing row -> UserNotFoundError
  - any other store failure        -> PersistenceError
"""

from typing import Protocol

from src.ua_user.domain.models import User


class UserRepositoryProtocol(Protocol):
    async def create(self, user: User) -> User: ...

    async def find_by_email(self, email: str) -> User | None: ...

    async def find_by_id(self, user_id: int) -> User | None: ...

    async def update(self, user: User) -> User: ...

    async def delete(self, user_id: int) -> None: ...

    async def list_page(self, offset: int, limit: int) -> tuple[list[User], int]: ...

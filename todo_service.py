#!/usr/bin/env -S uv run --script
#
# /// script
# dependencies = [
#    'pydantic',
# ]
# ///
import abc
import logging
from abc import ABC
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Callable, Optional, Sequence, TypedDict
from uuid import uuid4

from pydantic import BaseModel

logger = logging.getLogger(__name__)


# ============================================================================
# Domain layer
# ============================================================================

class DomainException(Exception):
    """Base for all domain errors"""
    pass


class InvalidTodoException(DomainException):
    pass


class DuplicateTodoError(DomainException):
    pass


class TodoStatus(str, Enum):
    LATE = "late"
    PENDING = "pending"


@dataclass(frozen=True)
class Todo:
    """Domain entity - plain value object, validated by the service"""

    text: str = ""
    when: Any = ""
    status: str = ""
    id: str = ""


class TodoRecord(TypedDict):
    """Shape of a todo as stored by a repository"""

    text: str
    when: Any
    status: str
    id: str


def _as_instant(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        # naive values are UTC
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class TodoPolicy:
    """Business rules - separate from service orchestration"""

    INVALID_DATA = "invalid data"

    @staticmethod
    def validate(todo: Todo) -> None:
        if not todo.text or not todo.when:
            raise InvalidTodoException(TodoPolicy.INVALID_DATA)

    @staticmethod
    def status_for(when: Any, now: datetime) -> TodoStatus:
        """Items due at or before ``now`` are late, later ones pending.

        A ``when`` that can't be read as an instant is never after ``now``.
        """
        due = _as_instant(when)
        current = _as_instant(now)
        if due is not None and due > current:
            return TodoStatus.PENDING
        return TodoStatus.LATE


class TodoRepository(ABC):
    """Persistence abstraction - interface only"""

    @abc.abstractmethod
    async def list(self) -> Sequence[TodoRecord]:
        pass

    @abc.abstractmethod
    async def create(self, record: TodoRecord) -> Any:
        pass


# ============================================================================
# Infrastructure layer
# ============================================================================


class InMemoryTodoRepository(TodoRepository):
    """Concrete implementation - storage details hidden here"""

    def __init__(self):
        self._todos: dict[str, TodoRecord] = {}

    async def list(self) -> list[TodoRecord]:
        return [TodoRecord(**record) for record in self._todos.values()]

    async def create(self, record: TodoRecord) -> TodoRecord:
        if record["id"] in self._todos:
            raise DuplicateTodoError(f"Todo {record['id']} already exists")
        self._todos[record["id"]] = TodoRecord(**record)
        return TodoRecord(**record)


# ============================================================================
# Application layer
# ============================================================================


class InvalidTodoData(BaseModel):
    """Echo of a rejected item, with the id it was given"""

    text: Any
    when: Any
    status: Any
    id: str


class CreateError(BaseModel):
    message: str
    data: InvalidTodoData


class CreateErrorResult(BaseModel):
    """Returned by ``TodoService.create`` instead of raising on bad input"""

    error: CreateError


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class TodoService:
    """Business orchestration - coordinates domain and infrastructure

    ``clock`` and ``id_factory`` are zero-argument callables, called at most
    once per operation, so tests can pin the current time and the generated ids.
    """

    def __init__(
        self,
        todo_repository: TodoRepository,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.todo_repository = todo_repository
        self.clock = clock or _utc_now
        self.id_factory = id_factory or _new_id

    async def list(self) -> list[Todo]:
        records = await self.todo_repository.list()
        logger.debug("Listing %d todos", len(records))
        return [
            Todo(
                text=record["text"].upper(),
                when=record["when"],
                status=record["status"],
                id=record["id"],
            )
            for record in records
        ]

    async def create(self, item: Todo) -> Any:
        todo_id = self.id_factory()

        try:
            TodoPolicy.validate(item)
        except InvalidTodoException as e:
            logger.info("Rejected todo %s: %s", todo_id, e)
            result = CreateErrorResult(
                error=CreateError(
                    message=str(e),
                    data=InvalidTodoData(
                        text=item.text,
                        when=item.when,
                        status=item.status,
                        id=todo_id,
                    ),
                )
            )
            return result.model_dump()

        status = TodoPolicy.status_for(item.when, self.clock())
        record = TodoRecord(
            text=item.text,
            when=item.when,
            status=status.value,
            id=todo_id,
        )
        logger.debug("Creating todo %s with status %s", todo_id, record["status"])
        return await self.todo_repository.create(record)


def create_service_container() -> TodoService:
    """Dependency injection - build service with all dependencies"""
    repository = InMemoryTodoRepository()
    return TodoService(todo_repository=repository)

"""Storage interfaces, errors, configuration and the store registry."""

from __future__ import annotations

import io
import string
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, BinaryIO, Protocol

from inbucket.stringutil import Address


class StorageError(Exception):
    """Base class for storage failures."""


class NotExistError(StorageError, LookupError):
    """The requested message does not exist."""

    def __init__(self, message: str = "message does not exist") -> None:
        super().__init__(message)


class NotWritableError(StorageError):
    """The message is closed and no longer writable."""

    def __init__(self, message: str = "message not writable") -> None:
        super().__init__(message)


@dataclass
class StorageConfig:
    """Settings that select and tune a message store."""

    type: str = ""
    params: dict[str, str] = field(default_factory=dict)
    retention_period: timedelta = timedelta(0)
    retention_sleep: timedelta = timedelta(0)
    mailbox_msg_cap: int = 0


class Message(Protocol):
    """A message to be stored, or one returned by a store."""

    mailbox: str
    id: str
    sender: Address | None
    recipients: list[Address]
    date: datetime
    subject: str
    seen: bool

    @property
    def size(self) -> int: ...

    def source(self) -> BinaryIO: ...


DeleteCallback = Callable[[Message], Any]
Visitor = Callable[[list[Message]], bool]


class Store(ABC):
    """The operations every message store provides."""

    @abstractmethod
    def add_message(self, message: Message) -> str:
        """Store the message and return its new ID; its ID and size are ignored."""

    @abstractmethod
    def get_message(self, mailbox: str, id: str) -> Message | None:
        """Return one message by ID, or the newest for the ID ``latest``."""

    @abstractmethod
    def get_messages(self, mailbox: str) -> list[Message]:
        """Return every message in a mailbox in delivery order."""

    @abstractmethod
    def mark_seen(self, mailbox: str, id: str) -> None:
        """Flag a message as read."""

    @abstractmethod
    def purge_messages(self, mailbox: str) -> None:
        """Delete every message in a mailbox."""

    @abstractmethod
    def remove_message(self, mailbox: str, id: str) -> None:
        """Delete one message."""

    @abstractmethod
    def visit_mailboxes(self, visitor: Visitor) -> None:
        """Call ``visitor`` with each mailbox's messages while it returns true."""


@dataclass(eq=False)
class Delivery:
    """A message being delivered, holding its metadata and raw content."""

    mailbox: str
    content: bytes = b""
    id: str = ""
    sender: Address | None = None
    recipients: list[Address] = field(default_factory=list)
    date: datetime = field(default_factory=datetime.now)
    subject: str = ""
    seen: bool = False

    def source(self) -> BinaryIO:
        """Return a reader over the raw message."""
        return io.BytesIO(self.content)

    @property
    def size(self) -> int:
        """Length of the raw message in bytes."""
        return len(self.content)


class HashLock:
    """A fixed set of locks picked by the first 12 bits of a mailbox hash."""

    SIZE = 4096

    def __init__(self) -> None:
        self._locks = tuple(threading.RLock() for _ in range(self.SIZE))

    def get(self, hash: str) -> threading.RLock:
        """Return the lock for a hex hash of at least three characters."""
        head = hash[:3]
        if len(head) < 3 or any(c not in string.hexdigits for c in head):
            raise ValueError(f"invalid mailbox hash: {hash!r}")
        return self._locks[int(head, 16)]


StoreFactory = Callable[[StorageConfig, "DeleteCallback | None"], Store]

_constructors: dict[str, StoreFactory] = {}


def register(name: str, factory: StoreFactory) -> None:
    """Register a store factory under a storage type name."""
    _constructors[name] = factory


def from_config(config: StorageConfig, on_delete: DeleteCallback | None = None) -> Store:
    """Create the store named by ``config.type``."""
    factory = _constructors.get(config.type)
    if factory is None:
        raise StorageError(f'unknown storage type configured: "{config.type}"')
    return factory(config, on_delete)
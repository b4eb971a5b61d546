"""A message store that keeps each mailbox in its own directory on disk."""

from __future__ import annotations

import itertools
import json
import logging
import os
import shutil
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO

from inbucket.storage import (
    DeleteCallback,
    HashLock,
    Message,
    NotExistError,
    StorageConfig,
    StorageError,
    Store,
    Visitor,
    register,
)
from inbucket.stringutil import Address, hash_mailbox_name

log = logging.getLogger(__name__)

INDEX_FILE_NAME = "index.gob"

# Sequential numbers 0000..9999 shared by every store, used to make IDs unique.
_counter = itertools.cycle(range(10000))
_counter_lock = threading.Lock()


def _next_count() -> int:
    with _counter_lock:
        return next(_counter)


def generate_prefix(date: datetime) -> str:
    """Format a time as the compact ISO-style prefix used for message files."""
    return date.strftime("%Y%m%dT%H%M%S")


def generate_id(date: datetime) -> str:
    """Return the prefix for ``date`` followed by a four-digit sequence number."""
    return f"{generate_prefix(date)}-{_next_count():04d}"


def get_mail_path(base: str) -> str:
    """Turn the ``path`` parameter into the mail directory; ``$`` becomes ``:``."""
    return os.path.join(base.replace("$", ":"), "mail")


def _address_to_json(address: Address | None) -> dict[str, str] | None:
    if address is None:
        return None
    return {"name": address.name, "address": address.address}


def _address_from_json(data: dict[str, str] | None) -> Address | None:
    if data is None:
        return None
    return Address(name=data["name"], address=data["address"])


@dataclass(eq=False)
class FileMessage:
    """Index data for one stored message; the raw content lives beside the index."""

    id: str
    date: datetime
    sender: Address | None = None
    recipients: list[Address] = field(default_factory=list)
    subject: str = ""
    size: int = 0
    seen: bool = False
    _box: _Mailbox | None = field(default=None, repr=False)

    @property
    def mailbox(self) -> str:
        """Name of the mailbox holding this message."""
        return self._box.name if self._box is not None else ""

    @property
    def raw_path(self) -> str:
        if self._box is None:
            raise StorageError(f"message {self.id} is not attached to a mailbox")
        return os.path.join(self._box.path, self.id + ".raw")

    def source(self) -> BinaryIO:
        """Open the raw message file for reading."""
        return open(self.raw_path, "rb")

    def _to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "from": _address_to_json(self.sender),
            "to": [_address_to_json(a) for a in self.recipients],
            "subject": self.subject,
            "size": self.size,
            "seen": self.seen,
        }

    @classmethod
    def _from_json(cls, data: dict[str, Any], box: _Mailbox) -> FileMessage:
        return cls(
            id=data["id"],
            date=datetime.fromisoformat(data["date"]),
            sender=_address_from_json(data["from"]),
            recipients=[_address_from_json(a) for a in data["to"]],
            subject=data["subject"],
            size=int(data["size"]),
            seen=bool(data["seen"]),
            _box=box,
        )


class _Mailbox:
    """One mailbox directory; callers must hold ``lock`` while using it."""

    def __init__(self, store: FileStore, name: str, dir_name: str) -> None:
        self.store = store
        self.name = name
        self.dir_name = dir_name
        self.path = os.path.join(store.mail_path, dir_name[:3], dir_name[:6], dir_name)
        self.index_path = os.path.join(self.path, INDEX_FILE_NAME)
        self.lock = store._hash_lock.get(dir_name)
        self.index_loaded = False
        self.messages: list[FileMessage] = []

    def ensure_index(self) -> None:
        if not self.index_loaded:
            self.read_index()

    def get_messages(self) -> list[FileMessage]:
        self.ensure_index()
        return list(self.messages)

    def get_message(self, id: str) -> FileMessage:
        self.ensure_index()
        if id == "latest" and self.messages:
            return self.messages[-1]
        for m in self.messages:
            if m.id == id:
                return m
        raise NotExistError()

    def remove_message(self, id: str) -> None:
        self.ensure_index()
        for pos, m in enumerate(self.messages):
            if m.id == id:
                removed = self.messages.pop(pos)
                self.store._emit_deleted(removed)
                break
        else:
            raise NotExistError()
        self.write_index()
        if not self.messages:
            # The whole directory went with the index.
            return
        log.debug("Deleting file %s", removed.raw_path)
        os.remove(removed.raw_path)

    def purge(self) -> None:
        self.messages = []
        self.write_index()

    def read_index(self) -> None:
        self.messages = []
        if not os.path.exists(self.index_path):
            log.debug("Index %s does not yet exist", self.index_path)
            self.index_loaded = True
            return
        try:
            with open(self.index_path, encoding="utf-8") as f:
                data = json.load(f)
            name = data["mailbox"]
            messages = [FileMessage._from_json(item, self) for item in data["messages"]]
        except (ValueError, KeyError, TypeError) as exc:
            raise StorageError(f'corrupt mailbox "{self.index_path}": {exc}') from exc
        self.name = name
        self.messages = messages
        self.index_loaded = True

    def write_index(self) -> None:
        if not self.messages:
            log.debug("Removing mailbox %s", self.path)
            self.remove_dir()
            return
        self.create_dir()
        data = {"mailbox": self.name, "messages": [m._to_json() for m in self.messages]}
        with open(self.index_path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def create_dir(self) -> None:
        try:
            os.makedirs(self.path, mode=0o770, exist_ok=True)
        except OSError:
            log.exception("Failed to create directory %s", self.path)
            raise

    def remove_dir(self) -> None:
        if os.path.exists(self.path):
            shutil.rmtree(self.path)
        parent = os.path.dirname(self.path)
        if _remove_dir_if_empty(parent):
            _remove_dir_if_empty(os.path.dirname(parent))


def _remove_dir_if_empty(path: str) -> bool:
    """Remove ``path`` if it holds nothing; return whether it was removed."""
    try:
        if os.listdir(path):
            return False
    except OSError:
        return False
    log.debug("Removing dir %s", path)
    try:
        os.rmdir(path)
    except OSError:
        log.exception("Failed to remove %s", path)
        return False
    return True


class FileStore(Store):
    """Stores mailboxes under ``<path>/mail``, hashed into a three-level tree."""

    def __init__(
        self,
        config: StorageConfig | None = None,
        on_delete: DeleteCallback | None = None,
    ) -> None:
        config = config if config is not None else StorageConfig()
        path = config.params.get("path", "")
        if not path:
            raise StorageError("'path' parameter not specified")
        self.path = path
        self.mail_path = get_mail_path(path)
        self.message_cap = config.mailbox_msg_cap
        self._on_delete = on_delete
        self._hash_lock = HashLock()
        try:
            os.makedirs(self.mail_path, mode=0o770, exist_ok=True)
        except OSError:
            log.exception("Error creating dir %s", self.mail_path)
            raise

    def add_message(self, message: Message) -> str:
        with self._mailbox(message.mailbox) as mb:
            reader = message.source()
            stored = self._new_message(mb)
            mb.create_dir()
            raw_path = stored.raw_path
            try:
                with reader, open(raw_path, "wb") as out:
                    shutil.copyfileobj(reader, out)
                    size = out.tell()
            except Exception:
                _remove_quietly(raw_path)
                raise
            stored.date = message.date
            stored.sender = message.sender
            stored.recipients = list(message.recipients)
            stored.size = size
            stored.subject = message.subject
            mb.messages.append(stored)
            try:
                mb.write_index()
            except Exception:
                _remove_quietly(raw_path)
                raise
            return stored.id

    def get_message(self, mailbox: str, id: str) -> FileMessage:
        with self._mailbox(mailbox) as mb:
            return mb.get_message(id)

    def get_messages(self, mailbox: str) -> list[FileMessage]:
        with self._mailbox(mailbox) as mb:
            return mb.get_messages()

    def mark_seen(self, mailbox: str, id: str) -> None:
        with self._mailbox(mailbox) as mb:
            mb.ensure_index()
            for m in mb.messages:
                if m.id == id:
                    if m.seen:
                        return
                    m.seen = True
                    break
            mb.write_index()

    def remove_message(self, mailbox: str, id: str) -> None:
        with self._mailbox(mailbox) as mb:
            mb.remove_message(id)

    def purge_messages(self, mailbox: str) -> None:
        with self._mailbox(mailbox) as mb:
            mb.ensure_index()
            for m in mb.messages:
                self._emit_deleted(m)
            mb.purge()

    def visit_mailboxes(self, visitor: Visitor) -> None:
        for dir_name in self._mailbox_dirs():
            mb = _Mailbox(self, "", dir_name)
            with mb.lock:
                messages = mb.get_messages()
            if not visitor(messages):
                return

    def _mailbox_dirs(self) -> Iterator[str]:
        for name1 in sorted(os.listdir(self.mail_path)):
            level1 = os.path.join(self.mail_path, name1)
            for name2 in sorted(os.listdir(level1)):
                yield from sorted(os.listdir(os.path.join(level1, name2)))

    def _new_message(self, mb: _Mailbox) -> FileMessage:
        """Create an empty message, first deleting old ones beyond the cap."""
        mb.ensure_index()
        if self.message_cap > 0:
            while len(mb.messages) >= self.message_cap:
                log.info("Mailbox %s over message cap", mb.name)
                oldest = mb.messages[0].id
                try:
                    mb.remove_message(oldest)
                except Exception:
                    log.exception("Unable to delete message %s from %s", oldest, mb.name)
        date = datetime.now()
        return FileMessage(id=generate_id(date), date=date, _box=mb)

    @contextmanager
    def _mailbox(self, name: str) -> Iterator[_Mailbox]:
        mb = _Mailbox(self, name, hash_mailbox_name(name))
        with mb.lock:
            yield mb

    def _emit_deleted(self, message: FileMessage) -> None:
        if self._on_delete is not None:
            self._on_delete(message)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass


register("file", FileStore)
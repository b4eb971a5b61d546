# inbucket

Storage and sanitizing components for a disposable e-mail testing server.
Mail is kept in per-mailbox stores that can be listed, read, marked as seen
and purged, and message HTML can be cleaned for safe display.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## What is inside

- `inbucket.stringutil`: `hash_mailbox_name` (hex SHA-1 of a mailbox name),
  the `Address` type with `string_address` and `string_address_list`
  (rendered as `Name <address>`), `make_path_prefixer` for URL path prefixes,
  and `match_with_wildcards` for `*`/`?` patterns.
- `inbucket.storage`: the `Store` base class and the `Message` protocol, the
  `Delivery` message type, `StorageConfig`, the errors `StorageError`,
  `NotExistError` and `NotWritableError`, the striped `HashLock` (4096 locks
  picked by the first three hex digits of a mailbox hash), and a registry of
  store types: `register(name, factory)` and `from_config(config, on_delete)`.
  `from_config` raises `StorageError` for an unregistered type.
- `inbucket.filestore`: `FileStore`, which keeps each mailbox under
  `<path>/mail/<hash[:3]>/<hash[:6]>/<hash>/`, one `<id>.raw` file per message
  beside an index file. It is registered as the storage type `"file"` when
  the module is imported. It needs the `path` parameter (a `$` in it becomes
  `:`), honours `mailbox_msg_cap` by deleting the oldest messages, and calls
  the optional `on_delete` callback for every message it removes. Message IDs
  come from `generate_id`: a `YYYYMMDDTHHMMSS` timestamp and a four-digit
  sequence number. A mailbox directory is removed when its last message goes.
- `inbucket.sanitize.css`: `tokenize` splits CSS into `Token`s of a
  `TokenType`; `sanitize_style` keeps only declarations of allow-listed
  properties and returns `""` if the text cannot be scanned.
- `inbucket.sanitize.htmlclean`: `sanitize_style_tags` rewrites `style`
  attributes through `sanitize_style`; `sanitize_html` then applies an
  allow-list of elements and attributes, drops `<script>` and `<style>`
  content, and adds `rel="nofollow"` to links.

## Example

```python
import tempfile
from datetime import datetime

from inbucket.filestore import FileStore
from inbucket.storage import Delivery, NotExistError, StorageConfig
from inbucket.stringutil import Address

with tempfile.TemporaryDirectory() as root:
    store = FileStore(StorageConfig(params={"path": root}, mailbox_msg_cap=100))
    delivery = Delivery(
        mailbox="alice",
        sender=Address("Sender", "sender@example.com"),
        recipients=[Address("Alice", "alice@example.com")],
        date=datetime.now(),
        subject="hello",
        content=b"Subject: hello\r\n\r\nHi there\r\n",
    )
    message_id = store.add_message(delivery)
    latest = store.get_message("alice", "latest")
    print(latest.subject, latest.size)
    with latest.source() as raw:
        print(raw.read())
    store.remove_message("alice", message_id)
    try:
        store.get_message("alice", message_id)
    except NotExistError:
        print("gone")
```

Sanitizing message HTML:

```python
from inbucket.sanitize.htmlclean import sanitize_html

sanitize_html('<p style="color: red; position: fixed;">hi</p><script>x</script>')
# '<p style="color: red;">hi</p>'
```

## What this package does not do

It has no SMTP or POP3 server, no web interface or HTTP API, and no command
to run. Only the on-disk `FileStore` is provided; there is no in-memory
store, and nothing deletes old messages on a schedule: messages leave a
mailbox only through the message cap, `remove_message` or `purge_messages`.
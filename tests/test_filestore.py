import os
import re
from datetime import datetime, timedelta

import pytest

from inbucket.filestore import (
    FileStore,
    generate_id,
    generate_prefix,
    get_mail_path,
)
from inbucket.storage import Delivery, NotExistError, StorageConfig, StorageError
from inbucket.stringutil import Address


def make_store(path, cap=0):
    deleted = []
    config = StorageConfig(params={"path": str(path)}, mailbox_msg_cap=cap)
    return FileStore(config, on_delete=deleted.append), deleted


@pytest.fixture
def store(tmp_path):
    return make_store(tmp_path)[0]


def deliver(store, mailbox, subject, date=None):
    to = Address("Some Body", "somebody@example.com")
    sender = Address("Some B. Else", "somebodyelse@example.com")
    text = (
        f"To: {to.address}\r\nFrom: {sender.address}\r\nSubject: {subject}\r\n\r\nTest Body\r\n"
    )
    content = text.encode()
    delivery = Delivery(
        mailbox=mailbox,
        content=content,
        sender=sender,
        recipients=[to],
        date=date or datetime.now(),
        subject=subject,
    )
    return store.add_message(delivery), len(content)


def subjects_of(store, mailbox):
    return [m.subject for m in store.get_messages(mailbox)]


def test_new_requires_path():
    with pytest.raises(StorageError, match="parameter not specified"):
        FileStore(StorageConfig())


def test_get_mail_path():
    assert get_mail_path("one") == os.path.join("one", "mail")
    assert get_mail_path("C$/inbucket") == os.path.join("C:/inbucket", "mail")


def test_generate_prefix_and_id():
    date = datetime(2020, 1, 2, 3, 4, 5)
    assert generate_prefix(date) == "20200102T030405"
    first = generate_id(date)
    second = generate_id(date)
    assert re.fullmatch(r"20200102T030405-\d{4}", first)
    assert first != second


def test_metadata(store):
    sender = Address("From Person", "from@example.com")
    to = [Address("One Person", "one@example.com"), Address("Two Person", "two@example.com")]
    date = datetime.now()
    content = b"doesn't matter"
    delivery = Delivery(
        mailbox="testmailbox",
        content=content,
        sender=sender,
        recipients=to,
        date=date,
        subject="fantastic test subject line",
    )
    msg_id = store.add_message(delivery)
    assert msg_id
    got = store.get_message("testmailbox", msg_id)
    assert got.mailbox == "testmailbox"
    assert got.id == msg_id
    assert got.sender == sender
    assert got.recipients == to
    assert got.date == date
    assert got.subject == "fantastic test subject line"
    assert got.size == len(content)
    assert got.seen is False


def test_content(store):
    content = bytes(i % 256 for i in range(5000))
    delivery = Delivery(mailbox="testmailbox", content=content, subject="binary")
    msg_id = store.add_message(delivery)
    with store.get_message("testmailbox", msg_id).source() as reader:
        assert reader.read() == content


def test_delivery_order(store):
    subjects = ["alpha", "bravo", "charlie", "delta", "echo"]
    for count, subj in enumerate(subjects):
        assert len(store.get_messages("fred")) == count
        deliver(store, "fred", subj)
    assert subjects_of(store, "fred") == subjects


def test_latest(store):
    for subj in ["alpha", "bravo", "charlie", "delta", "echo"]:
        deliver(store, "fred", subj)
    assert store.get_message("fred", "latest").subject == "echo"


def test_naming(store):
    deliver(store, "fred@example.com", "disk #27")
    assert store.get_messages("fred") == []
    assert len(store.get_messages("fred@example.com")) == 1


def test_size(store):
    sent = [deliver(store, "fred", s) for s in ["a", "br", "much longer than the others"]]
    for msg_id, size in sent:
        assert store.get_message("fred", msg_id).size == size


def test_seen(store):
    id1, _ = deliver(store, "lisa", "whatever")
    id2, _ = deliver(store, "lisa", "hello?")
    assert store.get_message("lisa", id1).seen is False
    store.mark_seen("lisa", id1)
    assert store.get_message("lisa", id1).seen is True
    assert store.get_message("lisa", id2).seen is False


def test_delete(tmp_path):
    store, deleted = make_store(tmp_path)
    for subj in ["alpha", "bravo", "charlie", "delta", "echo"]:
        deliver(store, "fred", subj)
    msgs = store.get_messages("fred")
    delete_ids = [msgs[1].id, msgs[3].id]
    for msg_id in delete_ids:
        store.remove_message("fred", msg_id)
    assert subjects_of(store, "fred") == ["alpha", "charlie", "echo"]
    assert sorted(m.id for m in deleted) == sorted(delete_ids)
    deliver(store, "fred", "foxtrot")
    assert subjects_of(store, "fred") == ["alpha", "charlie", "echo", "foxtrot"]


def test_remove_unknown_raises(store):
    deliver(store, "fred", "alpha")
    with pytest.raises(NotExistError):
        store.remove_message("fred", "nope")


def test_purge(tmp_path):
    store, deleted = make_store(tmp_path)
    subjects = ["alpha", "bravo", "charlie", "delta", "echo"]
    for subj in subjects:
        deliver(store, "fred", subj)
    assert len(store.get_messages("fred")) == 5
    store.purge_messages("fred")
    assert store.get_messages("fred") == []
    assert [m.subject for m in deleted] == subjects


def test_message_cap(tmp_path):
    store, _ = make_store(tmp_path, cap=10)
    for i in range(20):
        deliver(store, "captain", f"subject {i}")
        msgs = store.get_messages("captain")
        assert len(msgs) <= 10
        assert msgs[0].subject == f"subject {max(i - 9, 0)}"


def test_no_message_cap(store):
    for i in range(20):
        deliver(store, "captain", f"subject {i}")
        assert len(store.get_messages("captain")) == i + 1


def test_visit_mailboxes(store):
    boxes = ["abby", "bill", "christa", "donald", "evelyn"]
    for name in boxes:
        deliver(store, name, "Old Message", datetime.now() - timedelta(hours=24))
        deliver(store, name, "New Message")
    seen = {}

    def visitor(messages):
        seen[messages[0].mailbox] = len(messages)
        return True

    store.visit_mailboxes(visitor)
    assert seen == {name: 2 for name in boxes}


def test_visit_mailboxes_stops(store):
    for name in ["abby", "bill", "christa"]:
        deliver(store, name, "hello")
    calls = []
    store.visit_mailboxes(lambda messages: calls.append(messages) and False)
    assert len(calls) == 1


def test_dir_structure(store):
    root = store.path
    assert os.path.isdir(root)
    assert os.path.isdir(os.path.join(root, "mail"))
    level1 = os.path.join(root, "mail", "474")
    assert not os.path.isdir(level1)

    id1, _ = deliver(store, "james", "test")
    level2 = os.path.join(level1, "474ba6")
    mb_path = os.path.join(level2, "474ba67bdb289c6263b36dfd8a7bed6c85b04943")
    assert store.get_message("james", id1).raw_path == os.path.join(mb_path, id1 + ".raw")
    assert os.path.isdir(mb_path)
    assert os.path.isfile(os.path.join(mb_path, "index.gob"))
    assert os.path.isfile(os.path.join(mb_path, id1 + ".raw"))

    id2, _ = deliver(store, "james", "test 2")
    assert store.get_message("james", id2).raw_path == os.path.join(mb_path, id2 + ".raw")
    assert os.path.isfile(os.path.join(mb_path, id2 + ".raw"))

    store.remove_message("james", id1)
    assert [m.id for m in store.get_messages("james")] == [id2]
    assert not os.path.exists(os.path.join(mb_path, id1 + ".raw"))
    assert os.path.isfile(os.path.join(mb_path, "index.gob"))

    store.remove_message("james", id2)
    assert store.get_messages("james") == []
    assert not os.path.exists(os.path.join(mb_path, id2 + ".raw"))
    assert not os.path.exists(os.path.join(mb_path, "index.gob"))
    assert not os.path.exists(mb_path)
    assert not os.path.exists(level1)


def test_missing_raw_file(store):
    ids = [deliver(store, "fred", s)[0] for s in ["a", "b", "c"]]
    msg = store.get_message("fred", ids[1])
    os.remove(msg.raw_path)
    msg = store.get_message("fred", ids[1])
    assert msg.subject == "b"
    with pytest.raises(OSError):
        msg.source()


def test_get_latest_message(store):
    with pytest.raises(NotExistError):
        store.get_message("james", "latest")
    deliver(store, "james", "test")
    id2, _ = deliver(store, "james", "test 2")
    assert store.get_message("james", "latest").id == id2
    id3, _ = deliver(store, "james", "test 3")
    assert store.get_message("james", "latest").id == id3
    with pytest.raises(NotExistError):
        store.get_message("james", "wrongid")


def test_corrupt_index(store):
    msg_id, _ = deliver(store, "fred", "alpha")
    index = os.path.join(os.path.dirname(store.get_message("fred", msg_id).raw_path), "index.gob")
    with open(index, "w", encoding="utf-8") as f:
        f.write("not an index")
    with pytest.raises(StorageError, match="corrupt mailbox"):
        store.get_messages("fred")


def test_index_survives_new_store(tmp_path):
    store, _ = make_store(tmp_path)
    msg_id, _ = deliver(store, "fred", "persisted")
    reopened, _ = make_store(tmp_path)
    got = reopened.get_message("fred", msg_id)
    assert got.subject == "persisted"
    assert got.mailbox == "fred"
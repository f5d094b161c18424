import pytest

from conftest import NOW
from core.debounce import decide
from core.errors import PublishSendError
from core.publisher import Publisher
from models.state import PersistedState


@pytest.fixture
def publisher(channel, state_store, history):
    return Publisher(channel, state_store, history)


def _publish_args(state, fingerprint="new", force=False):
    decision = decide(fingerprint, force, state, 1, NOW)
    return state, decision.next_state, decision.reason


async def test_replaces_previous_message(publisher, channel, state_store, history):
    state = PersistedState(last_published_fingerprint="old", last_message_id="55")
    state_store.save(state)

    published = await publisher.publish("hello", *_publish_args(state), snapshot={"epic:current": []})

    assert channel.deleted == ["55"]
    assert channel.sent == ["hello"]
    assert published.last_message_id == "101"
    assert published.last_published_fingerprint == "new"
    assert published.last_change_at == NOW
    assert state_store.load() == published

    entry = history.recent(1)[0]
    assert entry.reason == "change"
    assert entry.message_id == "101"
    assert entry.previous_message_id == "55"


async def test_delete_failure_is_not_fatal(publisher, channel, state_store):
    channel.fail_delete = True
    state = PersistedState(last_published_fingerprint="old", last_message_id="55")

    published = await publisher.publish("hello", *_publish_args(state))

    assert channel.sent == ["hello"]
    assert published.last_message_id == "101"
    assert state_store.load().last_message_id == "101"


async def test_first_publish_skips_delete(publisher, channel):
    await publisher.publish("hello", *_publish_args(PersistedState()))
    assert channel.deleted == []


async def test_send_failure_leaves_state_and_history_untouched(publisher, channel, state_store, history):
    channel.fail_send = True
    state = PersistedState(last_published_fingerprint="old", last_message_id="55", pending_fingerprint="new", pending_count=1)
    state_store.save(state)

    with pytest.raises(PublishSendError):
        await publisher.publish("hello", *_publish_args(state))

    assert state_store.load() == state
    assert history.count() == 0


async def test_unexpected_send_error_is_wrapped(publisher, channel, state_store):
    async def boom(content):
        raise ConnectionError("reset by peer")

    channel.send = boom
    with pytest.raises(PublishSendError):
        await publisher.publish("hello", *_publish_args(PersistedState()))
    assert state_store.load() == PersistedState()


async def test_history_failure_does_not_break_publish(publisher, history, state_store):
    def broken(entry):
        raise RuntimeError("history offline")

    history.append = broken
    published = await publisher.publish("hello", *_publish_args(PersistedState(), force=True))
    assert state_store.load() == published


async def test_state_save_failure_still_records_history(publisher, state_store, history):
    def broken(state):
        raise OSError("read-only filesystem")

    state_store.save = broken
    with pytest.raises(OSError):
        await publisher.publish("hello", *_publish_args(PersistedState()))
    assert history.count() == 1

from fragment_sync import *

from .conftest import COMPONENT_PATH, TEXT_PATH, RecordingListener


def test_reset(session: MemorySession, repository: MemoryRepository):
    handshake = FlagResetHandshake()

    node = session.resolve(TEXT_PATH)
    assert node is not None

    assert handshake.reset(session, node) is True

    committed = repository.lookup(TEXT_PATH)
    assert committed is not None
    assert committed.get(REFRESH_PROPERTY) is False

    # already cleared
    node = session.resolve(TEXT_PATH)
    assert node is not None
    assert handshake.reset(session, node) is False


def test_reset_notifies(session: MemorySession, author: MemorySession):
    """
    Clearing the flag is a change like any other; clearing it again isn't.
    """
    listener = RecordingListener()
    author.subscribe(listener, EventKind.PROPERTY_CHANGED, "/content")

    handshake = FlagResetHandshake()
    for _ in range(2):
        node = session.resolve(TEXT_PATH)
        assert node is not None
        handshake.reset(session, node)

    assert [e.path for e in listener.events] == [f"{TEXT_PATH}/{REFRESH_PROPERTY}"]


def test_reset_missing_flag(session: MemorySession, repository: MemoryRepository):
    handshake = FlagResetHandshake("customRefresh")

    node = session.resolve(COMPONENT_PATH)
    assert node is not None

    # property is created
    assert handshake.reset(session, node) is False

    committed = repository.lookup(COMPONENT_PATH)
    assert committed is not None
    assert committed.get("customRefresh") is False

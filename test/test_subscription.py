import logging

from pytest import fixture, mark

from fragment_sync import *

from .conftest import (
    COMPONENT_PATH,
    TEXT_PATH,
    child_names,
)


class BrokenSession(MemorySession):
    """
    Session which fails to register listeners.
    """

    released: bool = False

    def subscribe(self, *args, **kwargs):
        raise RepositoryError("observation unavailable")

    def logout(self):
        self.released = True
        super().logout()


class BrokenIdentityProvider(MemoryIdentityProvider):
    sessions: list[BrokenSession]

    def __init__(self, repository: MemoryRepository):
        super().__init__(repository)
        self.sessions = []

    def acquire(self, service_name: str) -> MemorySession:
        session = BrokenSession(self.repository, service_name)
        self.sessions.append(session)
        return session


@fixture
def subscription(identity: MemoryIdentityProvider) -> ChangeSubscription:
    listener = EditableComponentListener(identity)
    return ChangeSubscription(identity, listener)


def edit(identity: MemoryIdentityProvider, path: str, name: str, value):
    with identity.acquire("author") as author:
        node = author.resolve(path)
        assert node is not None
        author.set_property(node, name, value)
        author.commit()


def test_start_stop(subscription: ChangeSubscription, repository: MemoryRepository):
    assert not subscription.active

    assert subscription.start()
    assert subscription.active

    handle = subscription.handle
    assert handle is not None
    assert handle.scope_path == CONTENT_ROOT
    assert handle.deep
    assert handle.event_kinds == EventKind.PROPERTY_CHANGED
    assert handle.node_types == (NT_UNSTRUCTURED,)
    assert handle.user_id == SERVICE_USER
    assert repository.registrations == [handle]

    # already active
    assert subscription.start()
    assert len(repository.registrations) == 1

    subscription.stop()
    assert not subscription.active
    assert repository.registrations == []

    # restart
    assert subscription.start()
    subscription.stop()


def test_stop_without_start(subscription: ChangeSubscription):
    subscription.stop()
    subscription.stop()
    assert not subscription.active


def test_stop_unsubscribe_failure(
    subscription: ChangeSubscription,
    repository: MemoryRepository,
    monkeypatch,
    caplog,
):
    """
    A failure to unregister the listener is logged and the session is still
    released.
    """
    caplog.set_level(logging.INFO)

    def unsubscribe(self, handle: SubscriptionHandle):
        raise RepositoryError("observation unavailable")

    assert subscription.start()
    monkeypatch.setattr(MemorySession, "unsubscribe", unsubscribe)

    subscription.stop()

    assert not subscription.active
    assert repository.registrations == []
    assert "Failed to unsubscribe" in caplog.text
    assert "Stopped listening" in caplog.text


def test_start_unauthorized(repository: MemoryRepository, caplog):
    identity = MemoryIdentityProvider(repository, [])
    subscription = ChangeSubscription(
        identity, EditableComponentListener(identity)
    )

    assert not subscription.start()
    assert not subscription.active
    assert repository.registrations == []
    assert "Failed to subscribe" in caplog.text

    # may be retried once authorized
    identity.allow(SERVICE_USER)
    assert subscription.start()
    subscription.stop()


def test_start_failure_releases(repository: MemoryRepository):
    identity = BrokenIdentityProvider(repository)
    subscription = ChangeSubscription(
        identity, EditableComponentListener(identity)
    )

    assert not subscription.start()
    assert not subscription.active

    assert len(identity.sessions) == 1
    assert identity.sessions[0].released
    assert not identity.sessions[0].live

    subscription.stop()


def test_context_manager(
    subscription: ChangeSubscription, repository: MemoryRepository
):
    with subscription:
        assert subscription.active

    assert not subscription.active
    assert repository.registrations == []


def test_edit_syncs(
    subscription: ChangeSubscription,
    identity: MemoryIdentityProvider,
    repository: MemoryRepository,
):
    with subscription:
        edit(identity, COMPONENT_PATH, "title", "New title")

    assert child_names(repository, COMPONENT_PATH) == ["c"]

    node = repository.lookup(COMPONENT_PATH)
    assert node is not None
    assert node.get(REFRESH_PROPERTY) is False


@mark.origin("a")
@mark.destination("a")
@mark.parametrize("guard_reentry", [True, False])
def test_refresh_settles(
    identity: MemoryIdentityProvider,
    repository: MemoryRepository,
    guard_reentry: bool,
):
    """
    Requesting a refresh replaces the component structure once and leaves the
    flag cleared, with or without the re-entry guard.
    """
    calls: list[bool] = []

    class CountingEngine(SyncEngine):
        def copy_subtree(self, session, origin, destination, force_refresh=False):
            calls.append(force_refresh)
            return super().copy_subtree(session, origin, destination, force_refresh)

    listener = EditableComponentListener(
        identity, engine=CountingEngine(), guard_reentry=guard_reentry
    )

    with ChangeSubscription(identity, listener):
        edit(identity, COMPONENT_PATH, REFRESH_PROPERTY, True)

    node = repository.lookup(COMPONENT_PATH)
    assert node is not None
    assert node.get(REFRESH_PROPERTY) is False
    assert [c.get("source") for c in node] == ["a"]

    # the echo of the reset is handled as a no-op when not guarded
    assert calls == ([True] if guard_reentry else [True, False])


def test_outside_scope(identity: MemoryIdentityProvider, repository: MemoryRepository):
    identity.allow("author")

    listener = EditableComponentListener(identity)
    subscription = ChangeSubscription(
        identity, listener, scope_path="/content/fragments"
    )

    with subscription:
        edit(identity, COMPONENT_PATH, "title", "New title")
        edit(identity, TEXT_PATH, "text", "Bye")

    # nothing observed under the page
    assert child_names(repository, COMPONENT_PATH) == ["a", "b"]
    node = repository.lookup(TEXT_PATH)
    assert node is not None and node.get(REFRESH_PROPERTY) is True


def test_listener_failure_contained(
    subscription: ChangeSubscription,
    identity: MemoryIdentityProvider,
    repository: MemoryRepository,
    caplog,
):
    """
    A failing event doesn't stop the subscription.
    """
    with subscription:
        identity.revoke(SERVICE_USER)
        edit(identity, COMPONENT_PATH, "title", "New title")

        identity.allow(SERVICE_USER)
        edit(identity, COMPONENT_PATH, "title", "Newer title")

        assert subscription.active

    assert child_names(repository, COMPONENT_PATH) == ["c"]
    assert len([r for r in caplog.records if r.levelno == logging.ERROR]) == 1


@mark.origin("a")
@mark.destination("a")
def test_refresh_with_other_changes(
    identity: MemoryIdentityProvider, repository: MemoryRepository
):
    """
    A refresh requested together with other changes in one commit syncs the
    component once, and the reset isn't handled as a new change.
    """
    calls: list[bool] = []

    class CountingEngine(SyncEngine):
        def copy_subtree(self, session, origin, destination, force_refresh=False):
            calls.append(force_refresh)
            return super().copy_subtree(session, origin, destination, force_refresh)

    listener = EditableComponentListener(identity, engine=CountingEngine())
    assert listener.guard is not None

    with ChangeSubscription(identity, listener):
        with identity.acquire("author") as author:
            node = author.resolve(COMPONENT_PATH)
            assert node is not None
            author.set_property(node, "title", "New")
            author.set_property(node, REFRESH_PROPERTY, True)
            author.commit()

    assert calls == [True]
    assert len(listener.guard) == 0

    node = repository.lookup(COMPONENT_PATH)
    assert node is not None
    assert node.get("title") == "New"
    assert node.get(REFRESH_PROPERTY) is False

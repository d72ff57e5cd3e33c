import asyncio

from legalpro_notifications.services.reconciler import NotificationReconciler, ReconcilerState
from legalpro_notifications.services.session_binding import SessionBinding
from legalpro_notifications.services.session_registry import SessionRegistry


# ============================================================
# SessionBinding
# ============================================================

async def test_login_binds_and_same_user_is_noop(reconciler, gateway, make_notification):
    gateway.seed(make_notification())
    binding = SessionBinding(reconciler)

    await binding.login("user-1")
    await binding.set_user("user-1")

    assert binding.user_id == "user-1"
    assert reconciler.state is ReconcilerState.ACTIVE
    assert gateway.calls_to("list_notifications") == 1


async def test_user_switch_rebinds(reconciler, gateway, make_notification):
    gateway.seed(
        make_notification(id="a1", user_id="user-1"),
        make_notification(id="b1", user_id="user-2"),
    )
    binding = SessionBinding(reconciler)

    await binding.set_user("user-1")
    await binding.set_user("user-2")

    assert reconciler.user_id == "user-2"
    assert [n.id for n in reconciler.notifications] == ["b1"]


async def test_logout_unbinds(reconciler, gateway, make_notification):
    gateway.seed(make_notification())
    binding = SessionBinding(reconciler)
    await binding.login("user-1")

    await binding.logout()

    assert binding.user_id is None
    assert reconciler.state is ReconcilerState.UNBOUND
    assert reconciler.unread_count == 0


async def test_empty_user_id_counts_as_logged_out(reconciler, gateway):
    binding = SessionBinding(reconciler)

    await binding.set_user("")

    assert binding.user_id is None
    assert gateway.calls == []


async def test_close_tears_down(reconciler, broker, gateway, make_notification):
    gateway.seed(make_notification())
    binding = SessionBinding(reconciler)
    await binding.login("user-1")

    await binding.close()

    assert reconciler.state is ReconcilerState.UNBOUND
    assert broker.subscriber_count("user-1") == 0


# ============================================================
# SessionRegistry
# ============================================================

async def test_registry_shares_one_session_per_user(gateway, make_notification):
    gateway.seed(make_notification())
    registry = SessionRegistry(lambda: NotificationReconciler(gateway))

    first, second = await asyncio.gather(
        registry.get_or_create("user-1"),
        registry.get_or_create("user-1"),
    )

    assert first is second
    assert len(registry) == 1
    assert "user-1" in registry
    assert gateway.calls_to("list_notifications") == 1
    await registry.close()


async def test_registry_release_and_close(gateway, broker):
    registry = SessionRegistry(lambda: NotificationReconciler(gateway))
    reconciler = await registry.get_or_create("user-1")
    await registry.get_or_create("user-2")

    assert await registry.release("user-1") is True
    assert await registry.release("user-1") is False
    assert reconciler.state is ReconcilerState.UNBOUND

    await registry.close()
    assert len(registry) == 0
    assert broker.subscriber_count("user-2") == 0


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def test_registry_prunes_idle_sessions(gateway, broker):
    clock = FakeClock()
    registry = SessionRegistry(lambda: NotificationReconciler(gateway), idle_ttl=60, clock=clock)
    reconciler = await registry.get_or_create("user-1")
    await registry.get_or_create("user-2")

    clock.now += 30
    await registry.get_or_create("user-2")
    clock.now += 30

    assert await registry.prune_idle() == ["user-1"]
    assert "user-1" not in registry
    assert "user-2" in registry
    assert reconciler.state is ReconcilerState.UNBOUND
    assert broker.subscriber_count("user-1") == 0
    await registry.close()


async def test_registry_keeps_sessions_with_an_open_stream(gateway):
    clock = FakeClock()
    registry = SessionRegistry(lambda: NotificationReconciler(gateway), idle_ttl=60, clock=clock)
    await registry.get_or_create("user-1")
    entry = registry.attach("user-1")

    clock.now += 3600
    assert await registry.prune_idle() == []
    assert entry.streams == 1

    registry.detach(entry)
    clock.now += 59
    assert await registry.prune_idle() == []
    clock.now += 1
    assert await registry.prune_idle() == ["user-1"]
    await registry.close()


async def test_registry_without_ttl_never_prunes(gateway):
    clock = FakeClock()
    registry = SessionRegistry(lambda: NotificationReconciler(gateway), clock=clock)
    await registry.get_or_create("user-1")

    clock.now += 10 ** 6

    assert await registry.prune_idle() == []
    assert "user-1" in registry
    await registry.close()


async def test_attach_to_released_session(gateway):
    registry = SessionRegistry(lambda: NotificationReconciler(gateway))

    assert registry.attach("user-1") is None
    registry.detach(None)


async def test_sweeper_releases_idle_sessions(gateway):
    registry = SessionRegistry(lambda: NotificationReconciler(gateway), idle_ttl=0.01)
    await registry.get_or_create("user-1")

    registry.start_sweeper(0.01)
    for _ in range(100):
        if "user-1" not in registry:
            break
        await asyncio.sleep(0.01)

    assert "user-1" not in registry
    await registry.close()

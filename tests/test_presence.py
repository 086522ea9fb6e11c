import asyncio
from datetime import datetime, timezone

from realtime.hub import ChatHub


async def test_online_broadcast_once_per_interval(hub, connect, store, drain, names):
    watcher = await connect("u2")

    first = await connect("u1")
    second = await connect("u1")
    assert names(drain(watcher)) == ["userOnline"]

    await hub.disconnect(first.connection_id)
    assert drain(watcher) == []
    assert hub.registry.is_online("u1")

    await hub.disconnect(second.connection_id)
    assert names(drain(watcher)) == ["userOffline"]
    assert not hub.registry.is_online("u1")

    writes = [w for w in store.presence_writes if w[0] == "u1"]
    assert [w[1] for w in writes] == [True, False]


async def test_online_event_payload_and_own_connections_excluded(connect, drain):
    watcher = await connect("u2")
    first = await connect("u1")

    event = drain(watcher)[0]
    assert event["data"]["userId"] == "u1"
    assert event["data"]["isOnline"] is True
    assert event["data"]["user"]["username"] == "user_u1"
    assert event["data"]["user"]["isOnline"] is True

    # The user's own devices are not told about themselves
    await connect("u1")
    assert drain(first) == []


async def test_offline_reports_last_seen_after_disconnect(hub, connect, store, drain):
    watcher = await connect("u2")
    only = await connect("u1")
    drain(watcher)

    before = datetime.now(timezone.utc)
    await hub.disconnect(only.connection_id)

    event = drain(watcher)[0]
    assert event["event"] == "userOffline"
    assert event["data"]["isOnline"] is False
    assert datetime.fromisoformat(event["data"]["lastSeen"]) >= before

    user_id, is_online, last_seen = store.presence_writes[-1]
    assert (user_id, is_online) == ("u1", False)
    assert last_seen >= before
    assert not hub.registry.is_online("u1")


async def test_storage_failure_does_not_block_broadcast(hub, connect, store, drain, names):
    watcher = await connect("u2")
    store.failing.add("update_user_presence")

    connection = await connect("u1")
    assert names(drain(watcher)) == ["userOnline"]

    await hub.disconnect(connection.connection_id)
    assert names(drain(watcher)) == ["userOffline"]


async def test_disconnect_is_idempotent(hub, connect, drain, names):
    watcher = await connect("u2")
    connection = await connect("u1")
    drain(watcher)

    await hub.disconnect(connection.connection_id)
    await hub.disconnect(connection.connection_id)

    assert names(drain(watcher)) == ["userOffline"]


async def test_presence_writes_land_in_edge_order(hub, connect, tokens, store, drain, names):
    watcher = await connect("u2")
    store.delays["update_user_presence"] = 0.05

    connecting = asyncio.create_task(hub.connect(tokens.issue("u1"), connection_id="slow"))
    while "slow" not in hub.registry:
        await asyncio.sleep(0)

    # The online write is still sleeping in the store when the user leaves
    await hub.disconnect("slow")
    await connecting

    assert names(drain(watcher)) == ["userOnline", "userOffline"]
    assert [w[1] for w in store.presence_writes if w[0] == "u1"] == [True, False]
    assert hub.presence._write_locks == {}
    assert hub.presence._pending_writes == {}


async def test_slow_presence_write_does_not_hold_connect(store, tokens):
    hub = ChatHub(store, tokens, auth_timeout=1.0, presence_timeout=0.05)
    store.delays["update_user_presence"] = 1.0

    loop = asyncio.get_running_loop()
    started = loop.time()
    connection = await hub.connect(tokens.issue("u1"))

    assert loop.time() - started < 0.5
    assert hub.registry.is_online("u1")
    assert connection.connection_id in hub.registry
    assert store.presence_writes == []
    assert hub.presence._write_locks == {}

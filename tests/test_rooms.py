from realtime.registry import ConnectionRegistry
from realtime.rooms import RoomMembership


async def test_member_join_subscribes(store):
    registry = ConnectionRegistry()
    registry.register("u1", "a")
    rooms = RoomMembership(registry, store)

    assert await rooms.join("a", "u1", "c1") is True
    assert rooms.subscribers("c1") == {"a"}
    assert rooms.rooms_for("a") == {"c1"}


async def test_non_member_join_is_declined_silently(store):
    registry = ConnectionRegistry()
    registry.register("u4", "d")
    rooms = RoomMembership(registry, store)

    assert await rooms.join("d", "u4", "c1") is False
    assert rooms.subscribers("c1") == set()
    assert not rooms.is_subscribed("d", "c1")


async def test_join_after_connection_closed_is_dropped(store):
    registry = ConnectionRegistry()
    registry.register("u1", "a")
    rooms = RoomMembership(registry, store)

    original = store.is_chat_member

    async def closing_lookup(user_id, chat_id):
        registry.unregister("a")
        return await original(user_id, chat_id)

    store.is_chat_member = closing_lookup

    assert await rooms.join("a", "u1", "c1") is False
    assert rooms.subscribers("c1") == set()


async def test_join_storage_failure_declines(store):
    registry = ConnectionRegistry()
    registry.register("u1", "a")
    rooms = RoomMembership(registry, store)
    store.failing.add("is_chat_member")

    assert await rooms.join("a", "u1", "c1") is False


async def test_leave_and_drop_connection(store):
    registry = ConnectionRegistry()
    registry.register("u1", "a")
    registry.register("u2", "b")
    store.add_chat("c2", "u1")
    rooms = RoomMembership(registry, store)
    await rooms.join("a", "u1", "c1")
    await rooms.join("a", "u1", "c2")
    await rooms.join("b", "u2", "c1")

    rooms.leave("a", "c1")
    assert rooms.subscribers("c1") == {"b"}

    # Leaving a room never joined is harmless
    rooms.leave("b", "c2")

    assert rooms.drop_connection("a") == {"c2"}
    assert rooms.subscribers("c2") == set()
    assert rooms.rooms_for("a") == set()

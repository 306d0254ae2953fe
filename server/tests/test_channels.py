import asyncio

from storefront.services.channels import FileChannel, LocalChannel


def test_local_channel_delivers_copies_and_keeps_last() -> None:
    channel = LocalChannel()
    first, second = [], []
    channel.subscribe(first.append)
    unsubscribe = channel.subscribe(second.append)

    assert channel.last() is None
    channel.publish({"entity_type": "product"})
    unsubscribe()
    channel.publish({"entity_type": "category"})

    assert first == [{"entity_type": "product"}, {"entity_type": "category"}]
    assert second == [{"entity_type": "product"}]
    assert first[0] is not second[0]
    assert channel.last() == {"entity_type": "category"}
    assert channel.subscriber_count == 1


def test_local_channel_survives_failing_subscriber() -> None:
    channel = LocalChannel()
    received = []

    def broken(message: dict) -> None:
        raise ValueError("bad subscriber")

    channel.subscribe(broken)
    channel.subscribe(received.append)
    channel.publish({"n": 1})
    assert received == [{"n": 1}]


def test_file_channel_reaches_other_instances(tmp_path) -> None:
    path = tmp_path / "changes.json"
    admin = FileChannel(path)
    shop = FileChannel(path)
    local, remote = [], []
    admin.subscribe(local.append)
    shop.subscribe(remote.append)

    admin.publish({"entity_type": "collection", "action": "update"})
    assert local == [{"entity_type": "collection", "action": "update"}]
    assert remote == []

    assert shop.check() is True
    assert remote == [{"entity_type": "collection", "action": "update"}]
    assert shop.last() == {"entity_type": "collection", "action": "update"}


def test_file_channel_does_not_redeliver(tmp_path) -> None:
    path = tmp_path / "changes.json"
    admin = FileChannel(path)
    admin.publish({"n": 1})
    received = []
    admin.subscribe(received.append)

    assert admin.check() is False

    late = FileChannel(path)
    late.subscribe(received.append)
    assert late.check() is False
    assert received == []


def test_file_channel_ignores_corrupted_contents(tmp_path) -> None:
    path = tmp_path / "changes.json"
    shop = FileChannel(path)
    received = []
    shop.subscribe(received.append)

    path.write_text("{truncated", encoding="utf-8")
    assert shop.check() is False
    path.write_text("[1, 2]", encoding="utf-8")
    assert shop.check() is False

    assert received == []
    assert shop.last() is None


def test_file_channel_poller_delivers(tmp_path) -> None:
    path = tmp_path / "nested" / "changes.json"
    shop = FileChannel(path, poll_interval=0.01)
    received = []
    shop.subscribe(received.append)

    async def scenario() -> None:
        shop.start()
        FileChannel(path).publish({"entity_type": "product"})
        for _ in range(100):
            if received:
                break
            await asyncio.sleep(0.01)
        await shop.stop()

    asyncio.run(scenario())
    assert received == [{"entity_type": "product"}]

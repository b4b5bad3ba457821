import asyncio
import json

from sahar.ws import ConnectionManager


class FakeSocket:
    def __init__(self, broken=False):
        self.broken = broken
        self.sent = []

    async def accept(self):
        pass

    async def send_text(self, text):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


def test_publish_reaches_listeners_and_drops_dead_ones():
    mgr = ConnectionManager()
    alive, dead = FakeSocket(), FakeSocket(broken=True)

    async def scenario():
        await mgr.connect(alive)
        await mgr.connect(dead)
        return await mgr.order_status(7, "Preparing")

    assert asyncio.run(scenario()) == 1
    (msg,) = alive.sent
    assert (msg["type"], msg["order_id"], msg["status"]) == ("order_status", 7, "Preparing")
    assert mgr.listeners == {alive}

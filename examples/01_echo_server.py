"""Echo server: answers every CHAT packet from a connected client to everyone.

Run with ``python examples/01_echo_server.py`` and point a client at UDP
port 7777. Clients connect with a ``PacketType.CONNECT`` packet and receive
their id back.
"""

import asyncio
import logging

from tickwire import Endpoint, Packet, Server, load_config

CHAT = 2


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    server = Server(load_config())

    def on_chat(packet: Packet, endpoint: Endpoint, client_id: int | None) -> None:
        if client_id is None:
            return
        text = packet.read_string()
        server.send_packet_to_all(Packet(CHAT).write_int(client_id).write_string(text))

    server.listen(CHAT, on_chat)

    async with server:
        await server.start(7777)
        while True:
            await server.tick()
            await asyncio.sleep(1 / 30)


if __name__ == "__main__":
    asyncio.run(main())

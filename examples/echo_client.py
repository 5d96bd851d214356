"""Example: keep a WebSocket open and echo every message back."""

import asyncio
import logging

from quickws import ReconnectingConnection

logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(message)s")


async def main() -> None:
    done = asyncio.Event()

    conn = (
        ReconnectingConnection.builder()
        .max_retries(5)
        .on_connection_established(lambda ws: ws.send("hello"))
        .on_message_received(lambda ws, msg: ws.send(f"echo: {msg}"))
        .on_connection_broken(done.set)
        .build()
    )
    conn.connect("ws://localhost:8765")

    try:
        await done.wait()
    finally:
        conn.close()


if __name__ == "__main__":
    asyncio.run(main())

from __future__ import annotations

import asyncio
import logging

from miaw import ClientOptions, MiawClient, MiawMessage

log = logging.getLogger("echo_bot")


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    client = MiawClient(ClientOptions(instance_id="demo", session_path="./sessions"))

    async def on_message(msg: MiawMessage) -> None:
        if msg.from_me or msg.type != "text" or not msg.text:
            return
        if msg.text.strip() == "!ping":
            await client.send_reaction(msg, "🏓")
            res = await client.send_text(msg.from_jid, "pong", quoted=msg)
        else:
            res = await client.send_text(msg.from_jid, msg.text)
        if not res.success:
            log.warning("reply to %s failed: %s", msg.from_jid, res.error)

    client.on("message", on_message)
    client.on("qr", lambda _code: log.info("not linked yet, run login_qr.py first"))
    client.on("reconnecting", lambda attempt: log.info("reconnecting (attempt %s)", attempt))

    async with client:
        await asyncio.Event().wait()


if __name__ == "__main__":
    asyncio.run(main())

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import qrcode  # pip install "miaw-core[qr]"
from qrcode.image.svg import SvgImage

from miaw import ClientOptions, MiawClient


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    session_dir = Path("./sessions").resolve()
    client = MiawClient(ClientOptions(instance_id="demo", session_path=str(session_dir)))

    def on_qr(code: str) -> None:
        print("\nScan this QR in WhatsApp -> Settings -> Linked devices -> Link a device\n")
        svg_path = session_dir / "demo-qr.svg"
        svg_path.parent.mkdir(parents=True, exist_ok=True)
        svg_path.write_bytes(qrcode.make(code, image_factory=SvgImage).to_string())
        print(f"wrote {svg_path}")

        qr = qrcode.QRCode(border=1)
        qr.add_data(code)
        qr.make(fit=True)
        qr.print_ascii(invert=True)

    client.on("qr", on_qr)
    client.on("ready", lambda: print("linked, session saved under", session_dir))
    client.on("disconnected", lambda reason: print("disconnected:", reason))

    async with client:
        await client.wait_for_state("connected", timeout_s=300)
        contacts = await client.fetch_all_contacts()
        print("contacts:", len(contacts.contacts))


if __name__ == "__main__":
    asyncio.run(main())

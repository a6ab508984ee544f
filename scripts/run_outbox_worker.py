"""
Outbox worker: рассылает письма, алерты в Telegram и создаёт Meet-ссылки.
Запуск: python -m scripts.run_outbox_worker
"""
import asyncio
import logging
import signal
import sys
sys.path.insert(0, '.')

from config import settings
from app.services.outbox_worker import OutboxWorker

logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


async def main():
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await OutboxWorker().run_forever(stop)


if __name__ == "__main__":
    asyncio.run(main())

import asyncio
import logging
import os
import signal
import sys

from dotenv import load_dotenv

from joinwatch.bot import create_bot
from joinwatch.config import ConfigError, Settings
from joinwatch.keepalive import start_keep_alive
from joinwatch.service import SHUTDOWN_GRACE_SECONDS

log = logging.getLogger("join_bot")

EXIT_OK = 0
EXIT_FAULT = 1
EXIT_CONFIG = 2


def setup_logging(level):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def run_bot(settings):
    """Run until a stop signal or a fatal error, then persist and close"""
    bot, service = create_bot(settings)
    runner = await start_keep_alive(settings.port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows: KeyboardInterrupt still ends asyncio.run

    async with bot:
        bot_task = asyncio.create_task(bot.start(settings.token))
        stop_task = asyncio.create_task(stop.wait())
        try:
            done, _ = await asyncio.wait({bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            if bot_task in done:
                bot_task.result()  # Re-raise login failures and gateway crashes
            else:
                log.info("Stop signal received")
        finally:
            bot.poll_members.cancel()
            log.info("Saving known members before exit...")
            await service.shutdown(grace=SHUTDOWN_GRACE_SECONDS)
            stop_task.cancel()
            await bot.close()
            await asyncio.gather(bot_task, return_exceptions=True)
            await runner.cleanup()


def main():
    load_dotenv()
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        log.error("Error: %s", e)
        return EXIT_CONFIG

    log.info("Starting join watch bot (alerts to channel %s)...", settings.channel_id)
    try:
        asyncio.run(run_bot(settings))
    except KeyboardInterrupt:
        pass
    except Exception:
        log.exception("Unhandled fault; exiting")
        return EXIT_FAULT
    return EXIT_OK


# Run the bot
if __name__ == "__main__":
    sys.exit(main())

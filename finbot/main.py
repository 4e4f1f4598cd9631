# finbot/main.py
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from aiogram import Bot, Dispatcher
from aiogram.types import BotCommand

from finbot.core.config import settings
from finbot.core.logging import setup_logging
from finbot.core.db import init_db
from finbot.core.scheduler import start_scheduler
from finbot.services.flow import FlowController
from finbot.services.parser import build_parser
from finbot.services.sessions import SessionStore
from finbot.services.transactions import DatabaseIdentities, DatabaseTransactions


async def _set_bot_commands(bot: Bot) -> None:
    commands = [
        BotCommand(command="start", description="Main menu"),
        BotCommand(command="help", description="What I can do"),
        BotCommand(command="menu", description="Back to the menu"),
        BotCommand(command="cancel", description="Cancel the current entry"),
    ]
    await bot.set_my_commands(commands)


def _local_today() -> date:
    return datetime.now(ZoneInfo(settings.tz)).date()


def build_flow(store: SessionStore) -> FlowController:
    transactions = DatabaseTransactions()
    return FlowController(
        store=store,
        parser=build_parser(
            settings.parser_api_key,
            model=settings.parser_model,
            base_url=settings.parser_base_url,
        ),
        sink=transactions,
        ledger=transactions,
        identities=DatabaseIdentities(),
        today=_local_today,
        currency=settings.currency_symbol,
        website_url=settings.website_url or None,
    )


async def main() -> None:
    setup_logging(settings.log_level)
    settings.require_bot()
    await init_db()

    store = SessionStore(timeout=timedelta(minutes=settings.session_timeout_min))
    bot = Bot(token=settings.bot_token)
    dp = Dispatcher(flow=build_flow(store))

    from finbot.handlers import setup as setup_handlers
    setup_handlers(dp)
    await _set_bot_commands(bot)

    scheduler = start_scheduler(store, settings.session_sweep_min)

    logging.info("Bot starting polling…")
    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        scheduler.shutdown(wait=False)
        with suppress(Exception):
            await bot.session.close()
        logging.info("Bot stopped.")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()

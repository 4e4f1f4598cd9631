# finbot/handlers/__init__.py
from __future__ import annotations

from typing import Iterable
from aiogram import Dispatcher, Router
import logging

LOADED_HANDLERS: list[str] = []


def _module_names() -> Iterable[str]:
    # ORDER MATTERS: commands before the catch-all text handler in chat
    return (
        "start",
        "chat",
    )


def setup(dp: Dispatcher) -> None:
    for name in _module_names():
        mod = __import__(f"finbot.handlers.{name}", fromlist=["router"])
        router: Router = getattr(mod, "router")
        dp.include_router(router)
        LOADED_HANDLERS.append(name)
        logging.info('handler_loaded name="%s"', name)

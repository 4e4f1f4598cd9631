# finbot/handlers/start.py
# Onboarding (/start), help (/help, /cancel)

from __future__ import annotations

from aiogram import Router, F
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from finbot.handlers.common import run_flow, send_replies
from finbot.services.flow import FlowController
from finbot.services.intents import CommandIntent

router = Router(name=__name__)


@router.message(CommandStart())
async def cmd_start(m: Message, flow: FlowController) -> None:
    await send_replies(m, await run_flow(flow, m, m.from_user, CommandIntent("start")))


@router.message(Command("help"))
async def cmd_help(m: Message, flow: FlowController) -> None:
    await send_replies(m, await run_flow(flow, m, m.from_user, CommandIntent("help")))


@router.message(Command("menu"))
async def cmd_menu(m: Message, flow: FlowController) -> None:
    await send_replies(m, await run_flow(flow, m, m.from_user, CommandIntent("menu")))


@router.message(Command("cancel"))
@router.message(F.text.lower() == "cancel")
async def cmd_cancel(m: Message, flow: FlowController) -> None:
    await send_replies(m, await run_flow(flow, m, m.from_user, CommandIntent("cancel")))

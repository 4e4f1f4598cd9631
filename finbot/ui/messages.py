# finbot/ui/messages.py
"""
Outbound side of the conversation: a transport-neutral Reply plus the menus
and texts the flow answers with. Rendering to Telegram markup lives in
finbot.ui.keyboards.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from finbot.services.categories import EXPENSE, INCOME, categories_for, display_name
from finbot.services.intents import Action, button
from finbot.services.sessions import Transaction

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_RULE = "━━━━━━━━━━━━━━━━"


class ReplyKind(str, Enum):
    MENU = "menu"
    PROMPT = "prompt"
    PREVIEW = "preview"
    NOTICE = "notice"


@dataclass(frozen=True)
class Button:
    text: str
    data: str | None = None
    url: str | None = None


Rows = tuple[tuple[Button, ...], ...]


@dataclass(frozen=True)
class Reply:
    kind: ReplyKind
    text: str
    buttons: Rows = field(default_factory=tuple)


def _pairs(buttons: list[Button]) -> list[tuple[Button, ...]]:
    rows, row = [], []
    for b in buttons:
        row.append(b)
        if len(row) == 2:
            rows.append(tuple(row))
            row = []
    if row:
        rows.append(tuple(row))
    return rows


# --- keyboards ----------------------------------------------------------------

def main_menu_buttons() -> Rows:
    return (
        (Button("➕ Add Transaction", button(Action.ADD_TRANSACTION)),),
        (Button("📊 View Balance", button(Action.VIEW_BALANCE)),),
        (Button("View Transactions", button(Action.VIEW_RECENT)),),
        (Button("Settings", button(Action.SETTINGS)),),
    )


def entry_mode_buttons() -> Rows:
    return (
        (Button("Manual Entry", button(Action.MODE_MANUAL)),),
        (Button("Quick Add (Text)", button(Action.MODE_NLP)),),
        (Button("Back", button(Action.MAIN_MENU)),),
    )


def type_buttons() -> Rows:
    return (
        (Button("Income", button(Action.PICK_TYPE, INCOME)), Button("Expense", button(Action.PICK_TYPE, EXPENSE))),
        (Button("Cancel", button(Action.MAIN_MENU)),),
    )


def category_buttons(tx_type: str) -> Rows:
    cats = [Button(label, button(Action.PICK_CATEGORY, tx_type, key)) for key, label in categories_for(tx_type).items()]
    return (*_pairs(cats), (Button("Back", button(Action.ADD_TRANSACTION)),))


def date_buttons() -> Rows:
    return (
        (Button("Today", button(Action.PICK_DATE, "today")), Button("Yesterday", button(Action.PICK_DATE, "yesterday"))),
        (Button("Custom Date", button(Action.PICK_DATE, "custom")),),
        (Button("Cancel", button(Action.MAIN_MENU)),),
    )


def confirm_buttons() -> Rows:
    return (
        (Button("✅ Confirm", button(Action.CONFIRM_SAVE)), Button("Edit", button(Action.CONFIRM_EDIT))),
        (Button("Cancel", button(Action.CONFIRM_CANCEL)),),
    )


def review_buttons(index: int) -> Rows:
    """index is 1-based and travels in the payload to catch stale clicks."""
    return (
        (Button("✅ Confirm", button(Action.MULTI_CONFIRM, index)),),
        (Button("Skip This", button(Action.MULTI_SKIP, index)),),
        (Button("Cancel All", button(Action.MULTI_CANCEL)),),
    )


def back_to_menu_buttons() -> Rows:
    return ((Button("Main Menu", button(Action.MAIN_MENU)),),)


def link_buttons(website_url: str | None, *, retry: bool = False) -> Rows:
    rows = [(Button("🔗 Try Again" if retry else "🔗 Link Account", button(Action.LINK_ACCOUNT)),)]
    if website_url:
        rows.append((Button("🌐 Visit Website", url=website_url),))
    return tuple(rows)


# --- formatting ---------------------------------------------------------------

def format_money(amount: Decimal, currency: str = "₹") -> str:
    return f"{currency}{amount:,.2f}"


def format_date(d: date) -> str:
    return f"{_MONTHS[d.month - 1]} {d.day}, {d.year}"


def format_preview(tx: Transaction, index: int | None = None, total: int | None = None,
                   currency: str = "₹") -> str:
    """Same record -> same text; field order type, category, amount, description, date."""
    header = f"Transaction {index}/{total}\n{_RULE}\n" if index and total else f"{_RULE}\n"
    return (
        header
        + f"Type: {'Income' if tx.type == INCOME else 'Expense'}\n"
        + f"Category: {display_name(tx.category)}\n"
        + f"Amount: {format_money(tx.amount, currency)}\n"
        + f"Description: {tx.description}\n"
        + f"Date: {format_date(tx.date)}\n"
        + _RULE
    )


# --- texts --------------------------------------------------------------------

MENU_PROMPT = "What would you like to do?"
CHOOSE_MODE = "Choose how you want to add your transaction:"
ASK_TYPE = "Is this an income or expense?"
ASK_AMOUNT = "Category: {category}\n\nEnter the amount:\nExample: 50 or 123.45"
ASK_DESCRIPTION = "Enter a description:\nExample: Lunch at cafe"
ASK_DATE = "Select transaction date:"
ASK_CUSTOM_DATE = "Enter the date as YYYY-MM-DD or DD/MM/YYYY:\nExample: 2026-02-05"
ASK_NLP_TEXT = (
    "Enter your transaction in natural language:\n\n"
    "Examples:\n"
    "• Coffee $5 at Starbucks\n"
    "• Lunch $25 and uber $15 yesterday\n"
    "• Monthly salary $4500"
)
ASK_EMAIL = (
    "🔗 Link Your Account\n\n"
    "Please enter the email address you used to register:\n\n"
    "📧 Example: john@example.com"
)
USE_BUTTONS = "Please use the buttons below."
HELP = (
    "Use the buttons to navigate.\n\n"
    "Send /start to see the main menu."
)
HELP_FULL = (
    "📘 Help\n\n"
    "• Manual Entry walks you through type, category, amount, description and date.\n"
    "• Quick Add understands text like \"Lunch $25 and uber $15 yesterday\".\n\n"
    "Commands:\n"
    "/start - main menu\n"
    "/cancel - abandon the current entry\n"
    "/help - this message"
)
SESSION_EXPIRED = "Session expired. Please start again."
ALREADY_HANDLED = "That transaction was already handled."
SAVED = "✅ Transaction saved successfully!\n\nYour transaction has been added."
SAVE_FAILED = "❌ Failed to save transaction.\n\nPlease press Confirm to try again."
EDIT_RESTART = "Transaction discarded.\n\nStart over to add a new transaction."
CANCELLED = "Transaction cancelled."
CANCELLED_IDLE = "Ok, cancelled."
PARSE_NOTHING = "❌ Could not parse any transactions.\n\nPlease try again or use manual entry."
PARSE_FAILED = "❌ Failed to parse transaction.\n\nPlease try again or use manual entry."
CANDIDATE_SAVE_FAILED = "❌ Failed to save transaction {index}. Continuing with the next one..."
LINK_OK = "✅ Account Linked Successfully!\n\nYou can start adding transactions!"
LINK_NOT_FOUND = (
    "❌ Email not found\n\n"
    "This email is not registered.\n\n"
    "Please check the spelling or register on the website, then try again."
)
LINK_FAILED = "❌ Something went wrong\n\nPlease try again later."
ALREADY_LINKED = "✅ Your account is already linked!"
SERVICE_DOWN = "❌ The service is temporarily unavailable. Please try again."
NO_TRANSACTIONS = "No transactions found.\n\nAdd your first transaction to get started!"


def welcome(name: str | None, linked: bool) -> str:
    who = name or "there"
    if linked:
        return f"Welcome back, {who}! 💰\n\nTrack expenses and income right from the chat."
    return f"Welcome, {who}! 💰\n\n🔐 To get started, please link your account."


def batch_saved(saved: int) -> str:
    return f"✅ {saved} transaction(s) saved." if saved else "No transactions saved."


def batch_cancelled(saved: int) -> str:
    return f"Process cancelled. {saved} transaction(s) were saved." if saved else "Process cancelled."


def balance_text(income: Decimal, expenses: Decimal, balance: Decimal, total: int, currency: str = "₹") -> str:
    return (
        "📊 Your Financial Summary\n\n"
        f"Income: {format_money(income, currency)}\n"
        f"Expenses: {format_money(expenses, currency)}\n"
        f"Balance: {format_money(balance, currency)}\n\n"
        f"Total Transactions: {total}"
    )


def recent_text(items: list[Transaction], currency: str = "₹") -> str:
    lines = ["Recent Transactions:", ""]
    for i, t in enumerate(items, 1):
        sign = "+" if t.type == INCOME else "-"
        lines.append(f"{i}. {display_name(t.category)} {sign}{format_money(t.amount, currency)}")
        lines.append(f"   {t.description}")
        lines.append("")
    return "\n".join(lines).rstrip()


def settings_text(linked: bool) -> str:
    status = "✅ Linked" if linked else "❌ Not Linked"
    return f"Settings\n\nAccount Status: {status}"

# finbot/services/categories.py
"""
Fixed internal category sets and the mapping from the parser's free-form
category names onto them.
"""
from __future__ import annotations

INCOME = "income"
EXPENSE = "expense"
TX_TYPES = (INCOME, EXPENSE)

OTHER = "other"

# key -> button label, in keyboard order
INCOME_CATEGORIES: dict[str, str] = {
    "salary": "💰 Salary",
    "business": "💼 Business",
    "gift": "🎁 Gift",
    "investment": "📈 Investment",
    "other": "Other",
}

EXPENSE_CATEGORIES: dict[str, str] = {
    "food": "🍔 Food",
    "transport": "🚗 Transport",
    "shopping": "🛒 Shopping",
    "bills": "🏠 Bills",
    "entertainment": "🎬 Entertainment",
    "health": "💊 Health",
    "education": "📚 Education",
    "other": "Other",
}

# categories the parser backend is prompted with
PARSER_CATEGORIES = (
    "Income", "Groceries", "Food", "Transport", "Shopping",
    "Entertainment", "Bills", "Health", "Other",
)

_EXACT: dict[str, str] = {
    "income": "salary",
    "salary": "salary",
    "business": "business",
    "gift": "gift",
    "investment": "investment",
    "groceries": "food",
    "food": "food",
    "transport": "transport",
    "shopping": "shopping",
    "entertainment": "entertainment",
    "bills": "bills",
    "health": "health",
    "education": "education",
    "other": OTHER,
}

# substring -> category, checked in order
_HEURISTICS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("food", "groceries", "grocery", "restaurant", "dining"), "food"),
    (("transport", "travel", "taxi", "fuel"), "transport"),
    (("shop",), "shopping"),
    (("bill", "utilities", "utility", "rent"), "bills"),
    (("entertainment", "fun", "movie"), "entertainment"),
    (("health", "medical", "pharmacy"), "health"),
    (("education", "learning", "course"), "education"),
    (("salary", "income", "wage"), "salary"),
)


def categories_for(tx_type: str) -> dict[str, str]:
    return INCOME_CATEGORIES if tx_type == INCOME else EXPENSE_CATEGORIES


def is_valid_category(tx_type: str, key: str) -> bool:
    return tx_type in TX_TYPES and key in categories_for(tx_type)


def display_name(key: str | None) -> str:
    if not key:
        return "Other"
    return key[:1].upper() + key[1:].lower()


def map_parser_category(name: str | None) -> str:
    """Parser category -> internal key. Never raises; unmatched -> "other"."""
    lower = (name or "").strip().lower()
    if not lower:
        return OTHER
    if lower in _EXACT:
        return _EXACT[lower]
    for needles, key in _HEURISTICS:
        if any(n in lower for n in needles):
            return key
    return OTHER

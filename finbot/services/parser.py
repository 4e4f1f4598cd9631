# finbot/services/parser.py
"""
Free text -> candidate transactions.

Two interchangeable clients share one contract:

    await client.parse(text, reference_date) -> list[Candidate]

An empty list means "nothing found". Any backend problem (network, bad JSON,
malformed items) is raised as ParserFailure; callers must keep the two apart.

LlmParserClient talks to an OpenAI-compatible chat endpoint (Groq by
default). RegexParserClient is the offline fallback used when no API key is
configured: one transaction per line / ";" / "and" segment.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Protocol

from openai import AsyncOpenAI, OpenAIError

from finbot.core.errors import ParserFailure
from finbot.services.categories import (
    EXPENSE, INCOME, OTHER, PARSER_CATEGORIES, map_parser_category,
)
from finbot.services.sessions import Candidate, Transaction
from finbot.services.validation import MAX_AMOUNT, MAX_DESCRIPTION

log = logging.getLogger(__name__)

_CENT = Decimal("0.01")


class ParserClient(Protocol):
    async def parse(self, text: str, reference_date: date) -> list[Candidate]: ...


PROMPT_TEMPLATE = """\
You are a financial parsing assistant. Extract one or more transactions from a natural language description.

For each transaction, extract: amount, category, description, type, date, confidence.

Rules:
- The category should be one of: {categories}.
- The transaction type should be "income" or "expense".
- Dates must be returned in ISO 8601 format (YYYY-MM-DD).
- If no date is mentioned, use today's date: {today}.
- Resolve words like "yesterday" or "last Friday" relative to {today}.
- Confidence is a number between 0.0 and 1.0.

Return a JSON object with a "transactions" key containing the array:
{{"transactions": [{{"amount": number, "category": string, "description": string, "type": string, "date": string, "confidence": number}}]}}

Return ONLY the JSON object.

Here is the transaction text: "{text}"
"""


def _amount(raw: Any) -> Decimal | None:
    if isinstance(raw, bool):
        return None
    try:
        num = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    if not num.is_finite() or num <= 0 or num > MAX_AMOUNT:
        return None
    num = num.quantize(_CENT, rounding=ROUND_HALF_UP)
    # "0.004" rounds to zero cents
    return num if num > 0 else None


def _clamp_confidence(raw: Any) -> float:
    try:
        c = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if c != c:  # NaN
        return 0.0
    return min(1.0, max(0.0, c))


def _unwrap(payload: Any) -> list[Any]:
    """Accept {"transactions": [...]}, a bare list, or one transaction object."""
    if isinstance(payload, dict):
        items = payload.get("transactions")
        if isinstance(items, list):
            return items
        if "amount" in payload and "category" in payload:
            return [payload]
    if isinstance(payload, list):
        return payload
    raise ParserFailure("parser returned an unexpected JSON structure")


def candidate_from_item(item: Any, text: str, reference_date: date) -> Candidate:
    """One parser item -> Candidate; malformed items raise ParserFailure."""
    if not isinstance(item, dict):
        raise ParserFailure("transaction item is not an object")

    amount = _amount(item.get("amount"))
    if amount is None:
        raise ParserFailure(f"bad amount: {item.get('amount')!r}")

    tx_type = str(item.get("type") or "").strip().lower()
    if tx_type not in (INCOME, EXPENSE):
        raise ParserFailure(f"bad type: {item.get('type')!r}")

    category = item.get("category")
    if not isinstance(category, str):
        raise ParserFailure("category is missing")

    raw_date = item.get("date")
    if raw_date:
        try:
            tx_date = date.fromisoformat(str(raw_date)[:10])
        except ValueError as e:
            raise ParserFailure(f"bad date: {raw_date!r}") from e
    else:
        tx_date = reference_date

    description = str(item.get("description") or "").strip() or text.strip()
    return Candidate(
        transaction=Transaction(
            type=tx_type,
            category=map_parser_category(category),
            amount=amount,
            description=description[:MAX_DESCRIPTION],
            date=tx_date,
        ),
        confidence=_clamp_confidence(item.get("confidence")),
    )


class LlmParserClient:
    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        client: Any = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def parse(self, text: str, reference_date: date) -> list[Candidate]:
        prompt = PROMPT_TEMPLATE.format(
            categories=", ".join(f'"{c}"' for c in PARSER_CATEGORIES),
            today=reference_date.isoformat(),
            text=text,
        )
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            log.warning("parser_request_failed err=%s", e.__class__.__name__)
            raise ParserFailure("parser backend is unavailable") from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        log.debug("parser_response len=%s", len(content))
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise ParserFailure("parser response is not JSON") from e

        return [candidate_from_item(item, text, reference_date) for item in _unwrap(payload)]


# --- offline fallback ------------------------------------------------------

_WS_RE = re.compile(r"\s+")
_SPLIT_RE = re.compile(r"\n|;|\band\b|\bthen\b", re.IGNORECASE)
_NUM_RE = re.compile(r"(?P<sign>[+\-])?\s*[$€£¥₹₽]?\s*(?P<num>\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)")
_ISO_IN_TEXT_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_NOISE_RE = re.compile(
    r"\b(today|yesterday|spent|paid|bought|for|on|at|rs\.?|inr|usd|eur|rupees?|dollars?)\b",
    re.IGNORECASE,
)

_INCOME_WORDS = ("salary", "income", "received", "got paid", "earned", "bonus", "refund", "freelance", "dividend")

# keyword -> parser-style category, mapped to internal keys afterwards
_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("grocer", "supermarket", "vegetable", "milk"), "Groceries"),
    (("lunch", "dinner", "breakfast", "coffee", "cafe", "restaurant", "pizza", "snack", "food", "tea"), "Food"),
    (("uber", "ola", "taxi", "cab", "bus", "metro", "train", "fuel", "petrol", "parking"), "Transport"),
    (("shirt", "shoes", "amazon", "clothes", "shopping", "mall"), "Shopping"),
    (("movie", "netflix", "concert", "game", "spotify"), "Entertainment"),
    (("rent", "electricity", "internet", "phone", "bill", "water"), "Bills"),
    (("doctor", "medicine", "pharmacy", "hospital", "gym"), "Health"),
    (("course", "book", "tuition", "school"), "Education"),
    (("salary", "bonus", "freelance"), "Income"),
)


def _normalize(text: str) -> str:
    return _WS_RE.sub(" ", text.strip())


def detect_type(text: str) -> str:
    t = text.lower()
    if t.startswith("+") or any(k in t for k in _INCOME_WORDS):
        return INCOME
    return EXPENSE


def detect_category(text: str) -> str | None:
    t = text.lower()
    for needles, name in _KEYWORDS:
        if any(n in t for n in needles):
            return name
    return None


def _product_phrase(text: str, match: re.Match) -> str:
    """Phrase before the amount; if the amount comes first, the phrase after it."""
    before = text[:match.start()].strip()
    phrase = before or text[match.end():].strip()
    phrase = _NOISE_RE.sub(" ", phrase)
    return _normalize(phrase.strip(" -–—,.:"))


def _segment_date(text: str, reference_date: date) -> date:
    t = text.lower()
    if "yesterday" in t:
        return reference_date - timedelta(days=1)
    m = _ISO_IN_TEXT_RE.search(t)
    if m:
        try:
            d = date.fromisoformat(m.group(1))
        except ValueError:
            return reference_date
        return d if d <= reference_date else reference_date
    return reference_date


class RegexParserClient:
    """Keyword/regex parser; best effort, never fails on odd input."""

    def _segments(self, text: str) -> Iterable[str]:
        for part in _SPLIT_RE.split(text or ""):
            part = _normalize(part)
            if part:
                yield part

    async def parse(self, text: str, reference_date: date) -> list[Candidate]:
        out: list[Candidate] = []
        # "yesterday" anywhere applies to segments that do not name their own day
        default_date = _segment_date(text or "", reference_date)
        for seg in self._segments(text):
            scrubbed = _ISO_IN_TEXT_RE.sub(" ", seg)
            m = _NUM_RE.search(scrubbed)
            if not m:
                continue
            amount = _amount(m.group("num").replace(",", ""))
            if amount is None:
                continue
            found = detect_category(seg)
            tx_type = INCOME if found == "Income" else detect_type(seg)
            category = map_parser_category(found) if found else OTHER
            phrase = _product_phrase(scrubbed, m)
            seg_date = _segment_date(seg, reference_date)
            out.append(Candidate(
                transaction=Transaction(
                    type=tx_type,
                    category=category,
                    amount=amount,
                    description=(phrase[:1].upper() + phrase[1:])[:MAX_DESCRIPTION] if phrase else seg[:MAX_DESCRIPTION],
                    date=seg_date if seg_date != reference_date else default_date,
                ),
                confidence=0.6 if found else 0.3,
            ))
        return out


def build_parser(api_key: str, *, model: str, base_url: str | None) -> ParserClient:
    if api_key:
        log.info('parser_backend kind="llm" model="%s"', model)
        return LlmParserClient(api_key, model=model, base_url=base_url)
    log.info('parser_backend kind="regex"')
    return RegexParserClient()

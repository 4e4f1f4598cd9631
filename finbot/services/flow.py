# finbot/services/flow.py
"""
Transaction-entry state machine.

One FlowController serves every conversation. `handle(event)` runs inside
the conversation's mailbox slot, so events of one chat are applied in the
order they arrived while other chats proceed independently.

Session writes go through compare-and-set against the session that was read
at the start of the step. Parser and sink calls happen between the read and
that write without holding the store guard; if the session was swept in the
meantime the write fails and the user gets the "session expired" answer
instead of a resurrected state.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Callable

from finbot.core.errors import (
    ExternalServiceFailure, IdentityLookupFailure, ParserFailure, SessionExpired,
    SinkFailure, UserInputError,
)
from finbot.services.categories import TX_TYPES, is_valid_category
from finbot.services.intents import (
    MANUAL_ACTIONS, NLP_ACTIONS, Action, ButtonIntent, CommandIntent, Event,
    TextIntent, UnknownIntent,
)
from finbot.services.mailbox import ConversationMailbox
from finbot.services.parser import ParserClient
from finbot.services.sessions import (
    FlowState, LinkingState, ManualState, ManualStep, Mode, NlpState, NlpStep,
    Session, SessionStore,
)
from finbot.services.transactions import Identity, IdentityDirectory, Ledger, TransactionSink
from finbot.services.validation import (
    format_validation_error, validate_amount, validate_date, validate_description,
    validate_email,
)
from finbot.ui import messages as ui
from finbot.ui.messages import Reply, ReplyKind

log = logging.getLogger(__name__)

# buttons that start something and therefore need a linked account
_ENTRY_ACTIONS = frozenset({
    Action.ADD_TRANSACTION, Action.MODE_MANUAL, Action.MODE_NLP,
    Action.VIEW_BALANCE, Action.VIEW_RECENT,
})

RECENT_LIMIT = 5


def _menu(text: str = ui.MENU_PROMPT) -> Reply:
    return Reply(ReplyKind.MENU, text, ui.main_menu_buttons())


def _notice(text: str) -> Reply:
    return Reply(ReplyKind.NOTICE, text)


class FlowController:
    def __init__(
        self,
        store: SessionStore,
        parser: ParserClient,
        sink: TransactionSink,
        ledger: Ledger,
        identities: IdentityDirectory,
        *,
        today: Callable[[], date] = date.today,
        currency: str = "₹",
        website_url: str | None = None,
        mailbox: ConversationMailbox | None = None,
    ) -> None:
        self.store = store
        self.parser = parser
        self.sink = sink
        self.ledger = ledger
        self.identities = identities
        self.today = today
        self.currency = currency
        self.website_url = website_url
        self.mailbox = mailbox or ConversationMailbox()

    # --- entry point --------------------------------------------------------

    async def handle(self, event: Event) -> list[Reply]:
        cid = event.conversation_id
        async with self.mailbox.hold(cid):
            try:
                return await self._dispatch(event)
            except UserInputError as e:
                log.debug('input_rejected conv="%s" field=%s', cid, e.field)
                return self._reprompt(cid, e.message)
            except SessionExpired:
                log.info('session_stale conv="%s"', cid)
                return [_menu(ui.SESSION_EXPIRED)]

    async def _dispatch(self, event: Event) -> list[Reply]:
        intent = event.intent
        if isinstance(intent, CommandIntent):
            return await self._on_command(event, intent.name)
        if isinstance(intent, TextIntent):
            return await self._on_text(event, intent.text)
        if isinstance(intent, ButtonIntent):
            return await self._on_button(event, intent)
        if isinstance(intent, UnknownIntent) and intent.raw.startswith("/"):
            return [_menu(ui.HELP)]
        # a button from some old keyboard
        raise SessionExpired()

    # --- session helpers ----------------------------------------------------

    def _require(self, cid: str, mode: Mode) -> Session:
        session = self.store.get(cid)
        if session is None or session.mode is not mode:
            raise SessionExpired()
        return session

    def _write(self, session: Session, state: FlowState | None) -> None:
        if not self.store.compare_and_set(session.conversation_id, session, state):
            raise SessionExpired()
        log.debug(
            'flow_transition conv="%s" from=%s/%s to=%s',
            session.conversation_id, session.mode.value, session.step.value,
            "idle" if state is None else f"{state.mode.value}/{state.step.value}",
        )

    async def _identity(self, event: Event) -> Identity | None:
        return await self.identities.resolve(event.user)

    def _start_linking(self, cid: str) -> list[Reply]:
        self.store.set(cid, LinkingState())
        return [Reply(ReplyKind.PROMPT, ui.ASK_EMAIL)]

    # --- prompts ------------------------------------------------------------

    def _prompt(self, state: FlowState) -> Reply:
        if isinstance(state, LinkingState):
            return Reply(ReplyKind.PROMPT, ui.ASK_EMAIL)

        if isinstance(state, ManualState):
            step, draft = state.step, state.draft
            if step is ManualStep.TYPE:
                return Reply(ReplyKind.MENU, ui.ASK_TYPE, ui.type_buttons())
            if step is ManualStep.CATEGORY:
                return Reply(ReplyKind.MENU, f"Select {draft.type} category:", ui.category_buttons(draft.type))
            if step is ManualStep.AMOUNT:
                text = ui.ASK_AMOUNT.format(category=ui.display_name(draft.category))
                return Reply(ReplyKind.PROMPT, text, ui.back_to_menu_buttons())
            if step is ManualStep.DESCRIPTION:
                return Reply(ReplyKind.PROMPT, ui.ASK_DESCRIPTION, ui.back_to_menu_buttons())
            if step is ManualStep.DATE:
                return Reply(ReplyKind.MENU, ui.ASK_DATE, ui.date_buttons())
            if step is ManualStep.CUSTOM_DATE:
                return Reply(ReplyKind.PROMPT, ui.ASK_CUSTOM_DATE, ui.back_to_menu_buttons())
            return Reply(
                ReplyKind.PREVIEW,
                ui.format_preview(draft.to_transaction(), currency=self.currency),
                ui.confirm_buttons(),
            )

        if state.step is NlpStep.TEXT:
            return Reply(ReplyKind.PROMPT, ui.ASK_NLP_TEXT, ui.back_to_menu_buttons())
        index = state.cursor + 1
        return Reply(
            ReplyKind.PREVIEW,
            ui.format_preview(state.current.transaction, index, len(state.candidates), currency=self.currency),
            ui.review_buttons(index),
        )

    def _reprompt(self, cid: str, error: str) -> list[Reply]:
        session = self.store.get(cid)
        if session is None:
            return [_menu(ui.SESSION_EXPIRED)]
        return [_notice(error), self._prompt(session.state)]

    # --- commands -----------------------------------------------------------

    async def _on_command(self, event: Event, name: str) -> list[Reply]:
        cid = event.conversation_id
        if name == "help":
            return [Reply(ReplyKind.NOTICE, ui.HELP_FULL)]
        if name == "cancel":
            self.store.clear(cid)
            return [_menu(ui.CANCELLED_IDLE)]
        if name == "menu":
            self.store.clear(cid)
            return [_menu()]

        # start
        try:
            identity = await self._identity(event)
        except IdentityLookupFailure:
            return [_notice(ui.SERVICE_DOWN)]
        text = ui.welcome(event.user.first_name, identity is not None)
        if identity is None:
            return [Reply(ReplyKind.MENU, text, ui.link_buttons(self.website_url))]
        return [_menu(text)]

    # --- buttons ------------------------------------------------------------

    async def _on_button(self, event: Event, intent: ButtonIntent) -> list[Reply]:
        cid, action = event.conversation_id, intent.action

        if action in MANUAL_ACTIONS:
            return await self._on_manual_button(event, self._require(cid, Mode.MANUAL), intent)
        if action in NLP_ACTIONS:
            return await self._on_review_button(event, self._require(cid, Mode.NLP), intent)

        if action is Action.MAIN_MENU:
            self.store.clear(cid)
            return [_menu()]

        try:
            identity = await self._identity(event)
        except IdentityLookupFailure:
            return [_notice(ui.SERVICE_DOWN)]

        if action is Action.SETTINGS:
            return [_menu(ui.settings_text(identity is not None))]
        if action is Action.LINK_ACCOUNT:
            if identity is not None:
                return [_menu(ui.ALREADY_LINKED)]
            return self._start_linking(cid)
        if action in _ENTRY_ACTIONS and identity is None:
            return self._start_linking(cid)

        if action is Action.ADD_TRANSACTION:
            self.store.clear(cid)
            return [Reply(ReplyKind.MENU, ui.CHOOSE_MODE, ui.entry_mode_buttons())]
        if action is Action.MODE_MANUAL:
            return [self._prompt(self.store.set(cid, ManualState()).state)]
        if action is Action.MODE_NLP:
            return [self._prompt(self.store.set(cid, NlpState()).state)]
        if action is Action.VIEW_BALANCE:
            return await self._balance(identity)
        if action is Action.VIEW_RECENT:
            return await self._recent(identity)
        raise SessionExpired()

    async def _balance(self, identity: Identity) -> list[Reply]:
        try:
            s = await self.ledger.summary(identity)
        except ExternalServiceFailure:
            return [_menu("❌ Failed to fetch balance.")]
        return [_menu(ui.balance_text(s.income, s.expenses, s.balance, s.total_transactions, self.currency))]

    async def _recent(self, identity: Identity) -> list[Reply]:
        try:
            items = await self.ledger.recent(identity, RECENT_LIMIT)
        except ExternalServiceFailure:
            return [_menu("❌ Failed to fetch transactions.")]
        if not items:
            return [_menu(ui.NO_TRANSACTIONS)]
        return [_menu(ui.recent_text([i.transaction for i in items], self.currency))]

    # --- manual entry -------------------------------------------------------

    async def _on_manual_button(self, event: Event, session: Session, intent: ButtonIntent) -> list[Reply]:
        state: ManualState = session.state
        step, draft, action = state.step, state.draft, intent.action

        if action is Action.PICK_TYPE and step is ManualStep.TYPE:
            if intent.value not in TX_TYPES:
                raise UserInputError(ui.USE_BUTTONS, field="type")
            new = ManualState(ManualStep.CATEGORY, replace(draft, type=intent.value))
            self._write(session, new)
            return [self._prompt(new)]

        if action is Action.PICK_CATEGORY and step is ManualStep.CATEGORY:
            if intent.extra != draft.type or not is_valid_category(draft.type, intent.value or ""):
                raise UserInputError(ui.USE_BUTTONS, field="category")
            new = ManualState(ManualStep.AMOUNT, replace(draft, category=intent.value))
            self._write(session, new)
            return [self._prompt(new)]

        if action is Action.PICK_DATE and step is ManualStep.DATE:
            if intent.value == "custom":
                new = ManualState(ManualStep.CUSTOM_DATE, draft)
            elif intent.value in ("today", "yesterday"):
                picked = validate_date(intent.value, self.today()).value
                new = ManualState(ManualStep.CONFIRM, replace(draft, date=picked))
            else:
                raise UserInputError(ui.USE_BUTTONS, field="date")
            self._write(session, new)
            return [self._prompt(new)]

        if step is not ManualStep.CONFIRM or action not in (
            Action.CONFIRM_SAVE, Action.CONFIRM_EDIT, Action.CONFIRM_CANCEL,
        ):
            raise UserInputError(ui.USE_BUTTONS, field=step.value)

        if action is Action.CONFIRM_CANCEL:
            self._write(session, None)
            return [_menu(ui.CANCELLED)]
        if action is Action.CONFIRM_EDIT:
            self._write(session, None)
            return [Reply(ReplyKind.MENU, ui.EDIT_RESTART, ui.entry_mode_buttons())]
        return await self._save_draft(event, session, state)

    async def _save_draft(self, event: Event, session: Session, state: ManualState) -> list[Reply]:
        cid = event.conversation_id
        try:
            identity = await self._identity(event)
        except IdentityLookupFailure:
            return [Reply(ReplyKind.NOTICE, ui.SAVE_FAILED, ui.confirm_buttons())]
        if identity is None:
            return [Reply(ReplyKind.MENU, ui.welcome(event.user.first_name, False), ui.link_buttons(self.website_url))]

        try:
            tx_id = await self.sink.create(identity, state.draft.to_transaction())
        except SinkFailure:
            # keep the draft at confirm; the user decides whether to retry
            log.warning('manual_save_failed conv="%s"', cid)
            return [Reply(ReplyKind.NOTICE, ui.SAVE_FAILED, ui.confirm_buttons())]

        log.info('manual_saved conv="%s" tx=%s', cid, tx_id)
        # saved either way; a session swept meanwhile simply stays gone
        self.store.compare_and_set(cid, session, None)
        return [_menu(ui.SAVED)]

    async def _on_text(self, event: Event, text: str) -> list[Reply]:
        cid = event.conversation_id
        session = self.store.get(cid)
        if session is None:
            return [_menu(ui.HELP)]
        if session.mode is Mode.LINKING:
            return await self._on_email(event, session, text)
        if session.mode is Mode.NLP:
            return await self._on_nlp_text(session, text)

        state: ManualState = session.state
        step, draft = state.step, state.draft
        if step is ManualStep.AMOUNT:
            res = validate_amount(text)
            if not res.valid:
                raise UserInputError(format_validation_error("Amount", res.error), field="amount")
            new = ManualState(ManualStep.DESCRIPTION, replace(draft, amount=res.value))
        elif step is ManualStep.DESCRIPTION:
            res = validate_description(text)
            if not res.valid:
                raise UserInputError(format_validation_error("Description", res.error), field="description")
            new = ManualState(ManualStep.DATE, replace(draft, description=res.value))
        elif step is ManualStep.CUSTOM_DATE:
            res = validate_date(text, self.today())
            if not res.valid:
                raise UserInputError(format_validation_error("Date", res.error), field="date")
            new = ManualState(ManualStep.CONFIRM, replace(draft, date=res.value))
        else:
            raise UserInputError(ui.USE_BUTTONS, field=step.value)

        self._write(session, new)
        return [self._prompt(new)]

    # --- linking ------------------------------------------------------------

    async def _on_email(self, event: Event, session: Session, text: str) -> list[Reply]:
        res = validate_email(text)
        if not res.valid:
            raise UserInputError(format_validation_error("Email", res.error), field="email")

        try:
            identity = await self.identities.find_identity_by_email(res.value)
            if identity is not None:
                await self.identities.link(event.user, identity)
        except IdentityLookupFailure:
            self._write(session, None)
            return [Reply(ReplyKind.MENU, ui.LINK_FAILED, ui.link_buttons(self.website_url, retry=True))]

        self._write(session, None)
        if identity is None:
            return [Reply(ReplyKind.MENU, ui.LINK_NOT_FOUND, ui.link_buttons(self.website_url, retry=True))]
        return [_menu(ui.LINK_OK)]

    # --- NLP import ---------------------------------------------------------

    async def _on_nlp_text(self, session: Session, text: str) -> list[Reply]:
        state: NlpState = session.state
        if state.step is not NlpStep.TEXT:
            raise UserInputError(ui.USE_BUTTONS, field="review")
        if not text.strip():
            raise UserInputError(format_validation_error("Text", "Please describe at least one transaction"), field="text")

        try:
            candidates = await self.parser.parse(text, self.today())
        except ParserFailure as e:
            log.warning('parse_failed conv="%s" err=%s', session.conversation_id, e)
            self._write(session, None)
            return [_menu(ui.PARSE_FAILED)]

        if not candidates:
            self._write(session, None)
            return [_menu(ui.PARSE_NOTHING)]

        new = NlpState(NlpStep.REVIEW, tuple(candidates), cursor=0, saved_count=0)
        self._write(session, new)
        log.info('parse_ok conv="%s" candidates=%s', session.conversation_id, len(candidates))
        return [self._prompt(new)]

    async def _on_review_button(self, event: Event, session: Session, intent: ButtonIntent) -> list[Reply]:
        state: NlpState = session.state
        if state.step is not NlpStep.REVIEW:
            raise UserInputError(ui.USE_BUTTONS, field="text")

        if intent.action is Action.MULTI_CANCEL:
            self._write(session, None)
            return [_menu(ui.batch_cancelled(state.saved_count))]

        if intent.index != state.cursor + 1:
            # a second click on an already reviewed candidate
            return [_notice(ui.ALREADY_HANDLED), self._prompt(state)]

        replies: list[Reply] = []
        saved = state.saved_count
        if intent.action is Action.MULTI_CONFIRM:
            try:
                identity = await self._identity(event)
                if identity is None:
                    raise SinkFailure("account is not linked")
                await self.sink.create(identity, state.current.transaction)
                saved += 1
            except ExternalServiceFailure as e:
                # no retry; the batch moves on to the next candidate
                log.warning('candidate_save_failed conv="%s" index=%s err=%s', event.conversation_id, intent.index, e)
                replies.append(_notice(ui.CANDIDATE_SAVE_FAILED.format(index=intent.index)))

        new = replace(state, cursor=state.cursor + 1, saved_count=saved)
        if new.done:
            self._write(session, None)
            replies.append(_menu(ui.batch_saved(saved)))
        else:
            self._write(session, new)
            replies.append(self._prompt(new))
        return replies

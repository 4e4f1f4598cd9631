# finbot/core/errors.py
"""
Error taxonomy of the transaction-entry engine.

UserInputError        -> re-prompt the same step, nothing changes
SessionExpired        -> uniform "session expired" answer, back to idle
ExternalServiceFailure -> parser / sink / identity backend failed; converted
                          at the adapter boundary, handled at the call site
"""
from __future__ import annotations


class FlowError(Exception):
    pass


class UserInputError(FlowError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class SessionExpired(FlowError):
    pass


class ExternalServiceFailure(FlowError):
    service = "external"


class ParserFailure(ExternalServiceFailure):
    service = "parser"


class SinkFailure(ExternalServiceFailure):
    service = "sink"


class IdentityLookupFailure(ExternalServiceFailure):
    service = "identity"

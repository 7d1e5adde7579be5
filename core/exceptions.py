from __future__ import annotations


class RecurrenceError(ValueError):
    """Base class for recurrence rule failures."""


class RuleParseError(RecurrenceError):
    """Raised when rule text cannot be parsed.

    ``key`` is the grammar key being parsed when the failure happened and
    ``token`` the offending piece of input, when known.
    """

    def __init__(self, message: str, *, key: str | None = None, token: str | None = None) -> None:
        self.key = key
        self.token = token
        detail = message
        if key is not None and token is not None:
            detail = f"{message} ({key}={token!r})"
        elif key is not None:
            detail = f"{message} ({key})"
        elif token is not None:
            detail = f"{message} ({token!r})"
        super().__init__(detail)


class UnknownFrequency(RuleParseError):
    pass


class MalformedInteger(RuleParseError):
    pass


class InvalidRuleValue(RuleParseError):
    pass


class MalformedByDayToken(RuleParseError):
    pass


class MalformedDateToken(RuleParseError):
    pass


class UnknownRuleKey(RuleParseError):
    pass


class DuplicateRuleKey(RuleParseError):
    pass


class UnsupportedRuleCombination(RuleParseError):
    pass


class MissingAnchorError(RecurrenceError):
    """Raised when occurrences are requested from a rule without an anchor start."""

"""Decision codec — turns operator resume values into typed intents.

Resume values arrive either as free text typed by the operator or as a loosely
structured dict built by a caller. Nothing in here raises on malformed input:
unknown shapes decode to empty/false defaults and the calling step decides
what an empty decision means.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

DEFAULT_REVISION_NOTE = "Please review and improve the form before submission."
VERIFICATION_DONE = "done"


@dataclass(frozen=True)
class SubmissionDecision:
    approved: bool
    suggestions: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class InformationDecision:
    additional_information: str = ""

    @property
    def declined(self) -> bool:
        """True when the operator gave nothing to work with."""
        return not self.additional_information


@dataclass(frozen=True)
class PasswordDecision:
    password: str | None = None


@dataclass(frozen=True)
class VerificationDecision:
    verification_code: str | None = None

    @property
    def completed_out_of_band(self) -> bool:
        return self.verification_code is None


def _clean_list(items: Any) -> list[str]:
    if isinstance(items, str):
        items = items.split(";")
    if not isinstance(items, (list, tuple)):
        return []
    return [item.strip() for item in items if isinstance(item, str) and item.strip()]


def _first_text(decision: Mapping, *keys: str) -> str:
    """Return the first key holding a string, trimmed. Empty if none does."""
    for key in keys:
        value = decision.get(key)
        if isinstance(value, str):
            return value.strip()
    return ""


def parse_submission_decision(decision: Any) -> SubmissionDecision:
    """Decode an approve / modify decision.

    ``"approve"`` (any case) or ``True`` approves. Any other text is split
    on ``;``. A dict with ``action == "approve"`` or ``approved is True``
    approves; an explicit ``action`` wins over ``approved``. Otherwise the
    ``suggestions`` are used. A rejection with no usable suggestions falls
    back to a single generic revision note.
    """
    if decision is True:
        return SubmissionDecision(approved=True)
    if isinstance(decision, str):
        if decision.strip().lower() == "approve":
            return SubmissionDecision(approved=True)
        suggestions = _clean_list(decision.split(";"))
    elif isinstance(decision, Mapping):
        action = decision.get("action")
        if isinstance(action, str) and action.strip().lower() == "approve":
            return SubmissionDecision(approved=True)
        if decision.get("approved") is True and not isinstance(action, str):
            return SubmissionDecision(approved=True)
        suggestions = _clean_list(decision.get("suggestions"))
    else:
        suggestions = []

    return SubmissionDecision(
        approved=False, suggestions=suggestions or [DEFAULT_REVISION_NOTE]
    )


def parse_information_decision(decision: Any) -> InformationDecision:
    """Decode additional information supplied for a missing-information interrupt."""
    if isinstance(decision, str):
        return InformationDecision(decision.strip())
    if isinstance(decision, Mapping):
        return InformationDecision(
            _first_text(decision, "additionalInformation", "additional_information", "message")
        )
    return InformationDecision()


def parse_password_decision(decision: Any) -> PasswordDecision:
    if isinstance(decision, str):
        password = decision.strip()
    elif isinstance(decision, Mapping):
        password = _first_text(decision, "password", "message")
    else:
        password = ""
    return PasswordDecision(password or None)


def parse_verification_decision(decision: Any) -> VerificationDecision:
    """Decode a verification code; ``"done"`` or nothing means verified via email link."""
    if isinstance(decision, str):
        code = decision.strip()
    elif isinstance(decision, Mapping):
        code = _first_text(decision, "verificationCode", "verification_code", "message")
    else:
        code = ""
    if not code or code.lower() == VERIFICATION_DONE:
        return VerificationDecision()
    return VerificationDecision(code)

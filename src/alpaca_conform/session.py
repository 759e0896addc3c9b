from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Optional

from .config.settings import ConformSettings
from .log import ConformLogger
from .protocol.classifier import Outcome, Verdict
from .report import ConformResults

INTERRUPTED_VERDICT = "The Alpaca protocol checks were interrupted before completion."
PASSED_VERDICT = (
    "Congratulations there were no errors, issues or information alerts - "
    "Your device passes ASCOM Alpaca protocol validation!!"
)
PASSED_STATUS = "Congratulations, there were no errors, issues or information messages!"


@dataclass(frozen=True)
class SessionMessage:
    member: str
    message: str
    context: Optional[str] = None

    def render(self) -> str:
        if self.context:
            return f"{self.member} ==> {self.message}\n  Response: {self.context}"
        return f"{self.member} ==> {self.message}"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


class ConformSession:
    """State shared by every component for one protocol check run.

    Owns the settings snapshot, the cancellation signal and the append-only
    Error, Issue and Information message lists.
    """

    def __init__(self, settings: ConformSettings, sink: Optional[ConformLogger] = None) -> None:
        self.settings = settings
        self.sink = sink or ConformLogger()
        self.cancel_event = asyncio.Event()
        self._lock = threading.Lock()
        self._errors: list[SessionMessage] = []
        self._issues: list[SessionMessage] = []
        self._information: list[SessionMessage] = []

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def errors(self) -> list[SessionMessage]:
        with self._lock:
            return list(self._errors)

    @property
    def issues(self) -> list[SessionMessage]:
        with self._lock:
            return list(self._issues)

    @property
    def information(self) -> list[SessionMessage]:
        with self._lock:
            return list(self._information)

    @property
    def issue_count(self) -> int:
        with self._lock:
            return len(self._issues)

    @property
    def return_code(self) -> int:
        with self._lock:
            return len(self._errors) + len(self._issues)

    def _append(self, messages: list[SessionMessage], member: str, message: str, context: Optional[str]) -> None:
        with self._lock:
            messages.append(SessionMessage(member, message, context))

    def log_ok(self, member: str, message: str, context: Optional[str] = None) -> None:
        if self.settings.message_level != "all":
            return
        self.sink.log_message(member, Outcome.OK, message, context if self.settings.show_success_responses else None)

    def log_info(self, member: str, message: str, context: Optional[str] = None) -> None:
        if self.settings.message_level not in ("information", "all"):
            return
        self.sink.log_message(member, Outcome.INFO, message, context)
        self._append(self._information, member, message, context)

    def log_issue(self, member: str, message: str, context: Optional[str] = None) -> None:
        self.sink.log_message(member, Outcome.ISSUE, message, context)
        self._append(self._issues, member, message, context)

    def log_error(self, member: str, message: str, context: Optional[str] = None) -> None:
        self.sink.log_message(member, Outcome.ERROR, message, context)
        self._append(self._errors, member, message, context)

    def log_debug(self, member: str, message: str) -> None:
        if self.settings.debug:
            self.sink.log_message(member, Outcome.DEBUG, message)

    def record(self, member: str, verdict: Verdict) -> None:
        if verdict.outcome is Outcome.OK:
            self.log_ok(member, verdict.message, verdict.context)
        elif verdict.outcome is Outcome.INFO:
            self.log_info(member, verdict.message, verdict.context)
        elif verdict.outcome is Outcome.ISSUE:
            self.log_issue(member, verdict.message, verdict.context)
        elif verdict.outcome is Outcome.ERROR:
            self.log_error(member, verdict.message, verdict.context)
        else:
            self.log_debug(member, verdict.message)

    def log_line(self, text: str = "") -> None:
        self.sink.log_line(text)

    def set_status(self, text: str) -> None:
        self.sink.set_status(text)

    def verdict(self) -> str:
        if self.cancelled:
            return INTERRUPTED_VERDICT
        with self._lock:
            errors, issues, information = len(self._errors), len(self._issues), len(self._information)
        if errors == issues == information == 0:
            return PASSED_VERDICT
        return (
            f"Found {_plural(errors, 'error')}, {_plural(issues, 'issue')} "
            f"and {_plural(information, 'information message')}."
        )

    def write_summary(self) -> None:
        self.log_line()
        verdict = self.verdict()
        self.set_status(PASSED_STATUS if verdict == PASSED_VERDICT else verdict)
        self.log_line(verdict)

        for title, messages in (
            ("Error Summary", self.errors),
            ("Issue Summary", self.issues),
            ("Information Message Summary", self.information),
        ):
            if not messages:
                continue
            self.log_line()
            self.log_line(title)
            for message in messages:
                self.log_line(message.render())
        self.log_line()

    def to_results(self, return_code: Optional[int] = None) -> ConformResults:
        return ConformResults(
            errors=[(message.member, message.message) for message in self.errors],
            issues=[(message.member, message.message) for message in self.issues],
            information=[(message.member, message.message) for message in self.information],
            cancelled=self.cancelled,
            return_code=self.return_code if return_code is None else return_code,
        )

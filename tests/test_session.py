import logging

from alpaca_conform.log import MEMBER_WIDTH, ConformLogger
from alpaca_conform.protocol.classifier import Outcome, Verdict
from alpaca_conform.session import INTERRUPTED_VERDICT, PASSED_VERDICT, ConformSession


def test_verdict_pluralisation(session):
    assert session.verdict() == PASSED_VERDICT

    session.log_error("GET Name", "boom")
    session.log_issue("GET Name", "bad")
    session.log_issue("GET Name", "worse")

    assert session.verdict() == "Found 1 error, 2 issues and 0 information messages."
    assert session.return_code == 3


def test_cancelled_verdict(session):
    session.cancel()
    assert session.verdict() == INTERRUPTED_VERDICT


def test_message_level_filters_information(conform_settings):
    session = ConformSession(conform_settings.model_copy(update={"message_level": "issues"}))

    session.record("GET Name", Verdict(Outcome.INFO, "note"))
    session.record("GET Name", Verdict(Outcome.ISSUE, "problem"))

    assert session.information == []
    assert [message.message for message in session.issues] == ["problem"]


def test_ok_lines_hide_response_unless_requested(conform_settings, caplog):
    caplog.set_level(logging.INFO, logger="alpaca_conform.protocol")
    quiet = ConformSession(conform_settings.model_copy(update={"show_success_responses": False}))

    quiet.log_ok("GET Name", "fine", '{"Value": "Mock"}')

    assert "fine" in caplog.text
    assert "Response:" not in caplog.text


def test_log_lines_are_column_aligned(caplog):
    caplog.set_level(logging.INFO, logger="alpaca_conform.protocol")
    sink = ConformLogger()

    sink.log_message("GET Name", Outcome.ISSUE, "bad", "{}")

    first, second = [record.getMessage() for record in caplog.records]
    assert first == "GET Name".ljust(MEMBER_WIDTH) + "ISSUE  bad"
    assert second.strip() == "Response: {}"
    assert caplog.records[0].levelno == logging.WARNING


def test_summary_sections(session, caplog):
    caplog.set_level(logging.INFO, logger="alpaca_conform.protocol")
    session.log_issue("GET Name", "bad", "{}")
    session.log_info("PUT SetSwitch", "omitted")

    session.write_summary()

    assert "Issue Summary" in caplog.text
    assert "GET Name ==> bad\n  Response: {}" in caplog.text
    assert "Information Message Summary" in caplog.text
    assert "Error Summary" not in caplog.text
    assert session.sink.status == "Found 0 errors, 1 issue and 1 information message."
    results = session.to_results()
    assert results.issues == [("GET Name", "bad")]
    assert results.return_code == 1

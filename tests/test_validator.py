import json

from alpaca_conform.protocol.classifier import Outcome
from alpaca_conform.protocol.image_bytes import IMAGE_BYTES_MIME_TYPE, ImageBytesMetadata, encode_frame
from alpaca_conform.protocol.validator import AdditionalCheck, validate_response


def _body(**payload) -> bytes:
    envelope = {"ClientTransactionID": 67890, "ServerTransactionID": 4, "ErrorNumber": 0, "ErrorMessage": ""}
    envelope.update(payload)
    return json.dumps(envelope).encode()


def _messages(report, outcome):
    return [verdict.message for verdict in report.findings if verdict.outcome is outcome]


def test_well_formed_get_response():
    report = validate_response(_body(Value=True), content_type="application/json")

    assert report.completed
    assert report.client_transaction_id == 67890
    assert report.server_transaction_id == 4
    assert report.value is True and report.has_value
    assert "JSON Value parameter found OK" in _messages(report, Outcome.OK)
    assert not _messages(report, Outcome.ISSUE)


def test_incorrectly_cased_envelope_field_is_issue():
    body = json.dumps({"clienttransactionid": 67890, "ServerTransactionID": 1, "ErrorNumber": 0, "ErrorMessage": "", "Value": 1})
    report = validate_response(body.encode(), content_type="application/json")

    assert report.client_transaction_id == 67890
    assert _messages(report, Outcome.ISSUE) == [
        "The ClientTransactionID JSON parameter is incorrectly cased, it should be cased like this: ClientTransactionID"
    ]


def test_missing_value_on_get_is_issue_unless_device_reported_error():
    report = validate_response(_body(), content_type="application/json")
    assert any("name Value was expected" in message for message in _messages(report, Outcome.ISSUE))

    tolerant = validate_response(_body(ErrorNumber=0x400, ErrorMessage="no"), content_type="application/json")
    assert not _messages(tolerant, Outcome.ISSUE)

    strict = validate_response(_body(ErrorNumber=0x400, ErrorMessage="no"), content_type="application/json", strict=True)
    assert _messages(strict, Outcome.ISSUE)


def test_put_responses_do_not_need_a_value():
    report = validate_response(_body(), content_type="application/json", http_method="PUT")
    assert not _messages(report, Outcome.ISSUE)


def test_axis_rates_missing_maximum_names_the_expected_casing():
    body = _body(Value=[{"Minimum": 0.0, "maximum": 1.0}, {"Minimum": 0.0, "Maximum": 2.0}])
    report = validate_response(body, content_type="application/json", additional_check=AdditionalCheck.AXIS_RATES)

    issues = _messages(report, Outcome.ISSUE)
    assert len(issues) == 1
    assert issues[0].startswith("Rate 1 - A JSON parameter of name Maximum was expected")
    assert "The JSON Maximum parameter must exist and be cased like this: Maximum." in _messages(report, Outcome.INFO)


def test_device_state_elements_need_name_and_value():
    body = _body(Value=[{"Name": "IsSafe", "Value": True}, {"name": "TimeStamp", "Value": "x"}])
    report = validate_response(body, content_type="application/json", additional_check=AdditionalCheck.DEVICE_STATE)
    assert len(_messages(report, Outcome.ISSUE)) == 1


def test_structural_surprise_is_reported_as_issue():
    report = validate_response(_body(Value=5), content_type="application/json", additional_check=AdditionalCheck.AXIS_RATES)
    assert any(message.startswith("Exception while parsing Alpaca response JSON") for message in _messages(report, Outcome.ISSUE))


def test_base64_handoff_requires_dimension_fields():
    body = _body(Type=2, Rank=2, Dimension0Length=3, Dimension1Length=4)
    report = validate_response(body, content_type="application/json", base64_handoff=True)
    issues = _messages(report, Outcome.ISSUE)
    assert len(issues) == 1 and "Dimension2Length" in issues[0]


def test_image_array_requires_case_sensitive_type_and_rank():
    body = _body(Value=[[1]], type=2, rank=2)
    report = validate_response(body, content_type="application/json", additional_check=AdditionalCheck.IMAGE_ARRAY)

    issues = _messages(report, Outcome.ISSUE)
    assert len(issues) == 2
    assert issues[0].startswith("A JSON parameter of name Type was expected")
    assert issues[1].startswith("A JSON parameter of name Rank was expected")
    assert all(issue.endswith("This test is case sensitive.") for issue in issues)


def test_image_array_with_type_and_rank_is_clean():
    body = _body(Value=[[1]], Type=2, Rank=2)
    report = validate_response(body, content_type="application/json", additional_check=AdditionalCheck.IMAGE_ARRAY)

    assert not _messages(report, Outcome.ISSUE)
    assert {"JSON Type parameter found OK", "JSON Rank parameter found OK"} <= set(_messages(report, Outcome.OK))


def test_malformed_json_is_error():
    report = validate_response(b"{not json", content_type="application/json", message_prefix="Good")
    assert len(_messages(report, Outcome.ERROR)) == 1
    assert report.completed


def test_negative_id_echo_is_information_in_tolerant_mode_only():
    body = _body(ClientTransactionID=-67890)

    tolerant = validate_response(body, content_type="application/json", negative_ids=True)
    assert _messages(tolerant, Outcome.INFO) and not _messages(tolerant, Outcome.ERROR)
    assert tolerant.client_transaction_id == 0

    strict = validate_response(body, content_type="application/json", negative_ids=True, strict=True)
    assert _messages(strict, Outcome.ERROR)


def test_non_object_json_root_stops_classification():
    report = validate_response(b"[1, 2]", content_type="application/json")
    assert not report.completed
    assert _messages(report, Outcome.ISSUE)


def test_image_bytes_frame_reads_envelope_from_header():
    frame = encode_frame(ImageBytesMetadata(error_number=0x40B, client_transaction_id=67890, server_transaction_id=9), error_message="busy")
    report = validate_response(frame, content_type=IMAGE_BYTES_MIME_TYPE, message_prefix="Good")

    assert report.completed
    assert report.client_transaction_id == 67890
    assert report.error_message == "busy"
    assert _messages(report, Outcome.OK) == ["Good - The expected ImageBytes metadata version was returned: 1"]


def test_truncated_image_bytes_frame_is_issue():
    report = validate_response(b"\x01\x00\x00\x00\x00", content_type=IMAGE_BYTES_MIME_TYPE)
    assert not report.completed
    assert _messages(report, Outcome.ISSUE)

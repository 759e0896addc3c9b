from __future__ import annotations

from http import HTTPStatus

ExpectedStatus = tuple[int, ...]

# An empty set means no status check: any code is reported as Information.
ANY_STATUS: ExpectedStatus = ()
STATUS_200: ExpectedStatus = (200,)
STATUS_400: ExpectedStatus = (400,)
STATUS_200_OR_400: ExpectedStatus = (200, 400)
STATUS_4XX: ExpectedStatus = (400, 401, 402, 403, 404, 405, 406, 407, 409, 410)


def describe_status(code: int) -> str:
    try:
        phrase = HTTPStatus(code).phrase
    except ValueError:
        return str(code)
    return f"{code} ({phrase})"


def describe_expected(codes: ExpectedStatus) -> str:
    noun = "statuses" if len(codes) > 1 else "status"
    return f"Expected HTTP {noun}: {', '.join(describe_status(code) for code in codes)}"

"""HTTP response builders for the privacy gateway endpoint.

Three distinct outcomes, never confused with one another:

  build_reject_response():
      HTTP 400 / 403: the pipeline returned a Rejected verdict.
      Carries ``X-Gateway-Reject: <reason code>``.
      Body is ``{"ok": false, "error": <code>}`` and nothing else: no match
      text, no span, no field path.

  build_accept_response():
      HTTP 200: the payload was accepted and the AI collaborator answered.

  build_upstream_unavailable_response():
      HTTP 502 / 503: the AI collaborator failed or is not configured.
      MUST NOT carry ``X-Gateway-Reject``: a connectivity error is not a
      privacy decision.

Every response carries ``X-Gateway-Request-ID`` for log correlation.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from gateway.models.verdict import RejectReason

REQUEST_ID_HEADER = "X-Gateway-Request-ID"
REJECT_HEADER = "X-Gateway-Reject"

#: Status code per rejection kind. A small cohort is a permission problem,
#: everything else is a bad request.
REJECT_STATUS: dict[RejectReason, int] = {
    RejectReason.PII_DETECTED: 400,
    RejectReason.INVALID_REQUEST: 400,
    RejectReason.PRIVACY_THRESHOLD: 403,
}


def build_reject_response(reason: RejectReason, request_id: str) -> JSONResponse:
    """Build the response for a Rejected verdict.

    Args:
        reason:     The verdict's RejectReason.
        request_id: ULID for this request.

    Returns:
        JSONResponse with status 400 or 403 and the reject header set.
    """
    response = JSONResponse(
        status_code=REJECT_STATUS[reason],
        content={"ok": False, "error": reason.value},
    )
    response.headers[REJECT_HEADER] = reason.value
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def build_accept_response(data: Any, request_id: str) -> JSONResponse:
    response = JSONResponse(status_code=200, content={"ok": True, "data": data})
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def build_upstream_unavailable_response(
    request_id: str,
    reason: str = "",
    status_code: int = 502,
) -> JSONResponse:
    """Build the response for AI collaborator failures.

    Args:
        request_id:  ULID for this request.
        reason:      Short operator-facing reason (an exception class name or
                     ``"not_configured"``). MUST NOT contain payload content.
        status_code: 502 when the collaborator failed, 503 when it is not
                     configured.
    """
    response = JSONResponse(
        status_code=status_code,
        content={
            "ok": False,
            "error": "upstream_unavailable",
            "detail": reason if reason else None,
        },
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response

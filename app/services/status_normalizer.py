"""
Status normalization for upstream job responses.

The upstream API reports job state in several shapes. Each rule below
recognizes one shape and the first rule that matches decides the status.
Rules are pure functions of the response body.
"""

from collections.abc import Callable
from typing import Any

from app.models.api import JobStatus
from app.models.domain import NormalizedStatus

RuleResult = tuple[JobStatus, str | None] | None
Rule = Callable[[dict[str, Any]], RuleResult]

COMPLETED_WORDS = frozenset({"completed", "succeeded", "success", "finished"})
FAILED_WORDS = frozenset({"failed", "error", "create_task_failed", "generate_failed"})

URL_FIELDS = ("result_url", "resultUrl", "url", "result", "output_url", "outputUrl", "content")

INVALID_RESPONSE_MESSAGE = "Empty or invalid upstream status response"


def _first_list_item(container: Any, key: str) -> str | None:
    if not isinstance(container, dict):
        return None
    values = container.get(key)
    if isinstance(values, list) and values and isinstance(values[0], str) and values[0]:
        return values[0]
    return None


def _result_urls(node: Any) -> str | None:
    """First entry of ``response.resultUrls`` or ``response.result_urls``."""
    if not isinstance(node, dict):
        return None
    response = node.get("response")
    return _first_list_item(response, "resultUrls") or _first_list_item(response, "result_urls")


def _url_fields(node: Any) -> str | None:
    if not isinstance(node, dict):
        return None
    for field in URL_FIELDS:
        value = node.get(field)
        if isinstance(value, str) and value:
            return value
    return None


def find_result_url(*nodes: Any) -> str | None:
    """Search each node's result lists, then its plain URL fields, in order."""
    for node in nodes:
        url = _result_urls(node) or _url_fields(node)
        if url:
            return url
    return None


def map_status_word(word: str) -> JobStatus:
    """Map an upstream status string onto the internal enum."""
    normalized = word.strip().lower()
    if normalized in COMPLETED_WORDS:
        return JobStatus.COMPLETED
    if normalized in FAILED_WORDS:
        return JobStatus.FAILED
    return JobStatus.PROCESSING


def _is_set(value: Any) -> bool:
    """Presence test for status fields; empty containers still count as set."""
    return isinstance(value, (list, dict)) or bool(value)


def _status_of(node: dict[str, Any], *url_nodes: Any) -> RuleResult:
    word = node.get("status")
    if not _is_set(word):
        return None
    if not isinstance(word, str):
        return JobStatus.PROCESSING, None

    status = map_status_word(word)
    if status == JobStatus.COMPLETED:
        return status, find_result_url(*url_nodes)
    return status, None


# ============================================================================
# Rules
# ============================================================================


def success_flag_rule(response: dict[str, Any]) -> RuleResult:
    """``data.successFlag``: 0 processing, 1 completed, 2 failed."""
    data = response.get("data")
    if not isinstance(data, dict) or "successFlag" not in data:
        return None

    flag = data["successFlag"]
    if isinstance(flag, bool) or not isinstance(flag, (int, float)):
        return JobStatus.PROCESSING, None
    if flag == 1:
        return JobStatus.COMPLETED, find_result_url(data)
    if flag == 2:
        return JobStatus.FAILED, None
    return JobStatus.PROCESSING, None


def data_status_rule(response: dict[str, Any]) -> RuleResult:
    """``data.status``; values other than strings mean still running."""
    data = response.get("data")
    if not isinstance(data, dict):
        return None
    return _status_of(data, data)


def root_status_rule(response: dict[str, Any]) -> RuleResult:
    """Root-level ``status``."""
    return _status_of(response, response, response.get("data"))


def root_success_rule(response: dict[str, Any]) -> RuleResult:
    """Root-level boolean ``success``."""
    success = response.get("success")
    if not isinstance(success, bool):
        return None
    if success:
        return JobStatus.COMPLETED, find_result_url(response, response.get("data"))
    return JobStatus.FAILED, None


RULES: tuple[Rule, ...] = (
    success_flag_rule,
    data_status_rule,
    root_status_rule,
    root_success_rule,
)


def _error_message(response: dict[str, Any]) -> str | None:
    data = response.get("data")
    for node in (data, response):
        if isinstance(node, dict):
            for field in ("errorMessage", "error_message"):
                value = node.get(field)
                if isinstance(value, str) and value:
                    return value
    return None


def normalize_status(response: Any) -> NormalizedStatus:
    """
    Reduce an upstream status response to a NormalizedStatus.

    A response that matches no rule is still in progress as far as we can
    tell; ``rule`` is None so the caller can log the shape. A response that
    is not a JSON object at all counts as a failure.
    """
    if not isinstance(response, dict):
        return NormalizedStatus(
            status=JobStatus.FAILED,
            error_message=INVALID_RESPONSE_MESSAGE,
            rule="invalid_response",
        )

    for rule in RULES:
        result = rule(response)
        if result is not None:
            status, url = result
            return NormalizedStatus(
                status=status,
                result_url=url,
                error_message=_error_message(response) if status == JobStatus.FAILED else None,
                rule=rule.__name__,
            )

    return NormalizedStatus(status=JobStatus.PROCESSING)

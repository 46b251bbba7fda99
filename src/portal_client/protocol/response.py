"""Decoding of org.freedesktop.portal.Request::Response signals.

The Response signal body is a ``(u, a{sv})`` tuple: a status code and a
dictionary of results. Only a successful response carries results with a
defined shape; for the other statuses the dictionary is ignored.

Usage:
    envelope = decode_response((0, {"session_handle": "/s/1"}), SomeResultsModel)
    match envelope:
        case Success(results=results):
            ...
        case Cancelled():
            ...
        case Other():
            ...
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Generic, TypeAlias, TypeVar, assert_never

from pydantic import BaseModel, ValidationError

from ..errors import MalformedMessageError, PortalResponseError, ResponseOutcome

T = TypeVar("T", bound=BaseModel)


class ResponseStatus(IntEnum):
    """Status codes of the Response signal."""

    SUCCESS = 0  # The request was carried out
    CANCELLED = 1  # The user cancelled the interaction
    OTHER = 2  # The interaction was ended in some other way


@dataclass(frozen=True)
class Success(Generic[T]):
    """The request was carried out; results hold the decoded payload."""

    results: T

    @property
    def status(self) -> ResponseStatus:
        return ResponseStatus.SUCCESS


@dataclass(frozen=True)
class Cancelled:
    """The user cancelled the interaction."""

    @property
    def status(self) -> ResponseStatus:
        return ResponseStatus.CANCELLED


@dataclass(frozen=True)
class Other:
    """The interaction was ended in some other way."""

    @property
    def status(self) -> ResponseStatus:
        return ResponseStatus.OTHER


ResponseEnvelope: TypeAlias = Success[T] | Cancelled | Other


def _decode_status(raw: Any) -> ResponseStatus:
    # bool is an int subclass but never a valid status
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise MalformedMessageError(
            f"Expected a numeric (u) response status as the first item, got {raw!r}"
        )
    try:
        return ResponseStatus(raw)
    except ValueError as e:
        raise MalformedMessageError(f"Unknown response status: {raw}") from e


def _decode_results(raw: Any, results_model: type[T]) -> T:
    if not isinstance(raw, Mapping) or not all(isinstance(key, str) for key in raw):
        raise MalformedMessageError(
            f"Expected a vardict (a{{sv}}) with the returned results, got {raw!r}"
        )
    try:
        return results_model.model_validate(dict(raw))
    except ValidationError as e:
        raise MalformedMessageError(
            f"Response results do not match {results_model.__name__}: {e}"
        ) from e


def decode_response(body: Any, results_model: type[T]) -> ResponseEnvelope[T]:
    """Decode a Response signal body into a typed envelope.

    Args:
        body: The ``(status, results)`` signal body
        results_model: Pydantic model the results must validate against
            when the status is SUCCESS

    Returns:
        Success, Cancelled or Other

    Raises:
        MalformedMessageError: If the body is not a two-item tuple, the
            status is not 0, 1 or 2, or successful results do not validate
    """
    if isinstance(body, (str, bytes)) or not isinstance(body, Sequence) or len(body) != 2:
        raise MalformedMessageError(
            f"Expected a tuple composed of the response status along with the results, got {body!r}"
        )

    raw_status, raw_results = body
    status = _decode_status(raw_status)

    match status:
        case ResponseStatus.SUCCESS:
            return Success(_decode_results(raw_results, results_model))
        case ResponseStatus.CANCELLED:
            return Cancelled()
        case ResponseStatus.OTHER:
            return Other()
        case _:
            assert_never(status)


def unwrap_response(envelope: ResponseEnvelope[T]) -> T:
    """Return the results of a successful envelope.

    Raises:
        PortalResponseError: If the envelope is Cancelled or Other
    """
    match envelope:
        case Success(results=results):
            return results
        case Cancelled():
            raise PortalResponseError(ResponseOutcome.CANCELLED)
        case Other():
            raise PortalResponseError(ResponseOutcome.OTHER)
        case _:
            assert_never(envelope)

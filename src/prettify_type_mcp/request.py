"""Sentinel requests smuggled through the completion channel.

Editors ask for a TypeTree by issuing an ordinary "completions at position"
query whose trigger character is replaced with a :class:`PrettifyRequest`
payload. :class:`CompletionProxy` recognises the sentinel, answers with an
empty completion list plus the out-of-band ``__prettifyResponse`` field, and
leaves every other request to the wrapped service.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Literal, Mapping, Optional

from mcp.server.fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from prettify_type_mcp.type_tree.models import TypeInfo

PRETTIFY_REQUEST_META = "prettify-type-info-request"
PRETTIFY_RESPONSE_FIELD = "__prettifyResponse"

_UNBOUNDED = sys.maxsize

logger = get_logger(__name__)


class PrettifyOptions(BaseModel):
    """Bounds and policies applied while building a TypeTree."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    hide_private_properties: bool = True
    max_depth: int = Field(default=2, ge=0)
    max_properties: int = Field(default=100, ge=0)
    max_sub_properties: int = Field(default=5, ge=0)
    max_union_members: int = Field(default=15, ge=0)
    max_function_signatures: int = Field(default=5, ge=0)
    skipped_type_names: List[str] = Field(default_factory=list)
    unwrap_arrays: bool = True
    unwrap_functions: bool = True
    unwrap_generic_arguments_type_names: List[str] = Field(default_factory=list)
    generate_display_parts: bool = False
    perf_warning_threshold_ms: float = 20

    @classmethod
    def full(cls, **overrides: Any) -> "PrettifyOptions":
        """Options that expand everything, used by the "copy full type" action."""

        values: Dict[str, Any] = {
            "max_depth": _UNBOUNDED,
            "max_properties": _UNBOUNDED,
            "max_sub_properties": _UNBOUNDED,
            "max_union_members": _UNBOUNDED,
            "max_function_signatures": _UNBOUNDED,
            "unwrap_arrays": True,
            "unwrap_functions": True,
        }
        values.update(overrides)
        return cls(**values)


class PrettifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meta: Literal["prettify-type-info-request"] = PRETTIFY_REQUEST_META
    options: PrettifyOptions = Field(default_factory=PrettifyOptions)


def is_prettify_request(trigger: Any) -> bool:
    """Return ``True`` when ``trigger`` carries the prettify sentinel."""

    if isinstance(trigger, PrettifyRequest):
        return True
    return isinstance(trigger, Mapping) and trigger.get("meta") == PRETTIFY_REQUEST_META


def parse_prettify_request(trigger: Any) -> PrettifyRequest:
    if isinstance(trigger, PrettifyRequest):
        return trigger
    return PrettifyRequest.model_validate(dict(trigger))


TypeInfoProvider = Callable[[str, int, PrettifyOptions], Optional["TypeInfo"]]


def empty_completion_info() -> Dict[str, Any]:
    return {
        "isGlobalCompletion": False,
        "isMemberCompletion": False,
        "isNewIdentifierLocation": False,
        "entries": [],
    }


class CompletionProxy:
    """Wrap a language service's completion entry point.

    ``service`` must expose ``get_completions_at_position(file_name, position,
    options)`` where ``options`` may hold a ``triggerCharacter``. The provider
    answers ``(file_name, position, options) -> TypeInfo | None``.
    """

    def __init__(self, service: Any, provider: TypeInfoProvider) -> None:
        self._service = service
        self._provider = provider

    def __getattr__(self, name: str) -> Any:
        return getattr(self._service, name)

    def get_completions_at_position(
        self,
        file_name: str,
        position: int,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        trigger = (options or {}).get("triggerCharacter")
        if not is_prettify_request(trigger):
            return self._service.get_completions_at_position(file_name, position, options)

        try:
            request = parse_prettify_request(trigger)
        except ValidationError as exc:
            logger.warning("Ignoring malformed prettify request options: %s", exc)
            request = PrettifyRequest()

        type_info = self._provider(file_name, position, request.options)
        response = empty_completion_info()
        response[PRETTIFY_RESPONSE_FIELD] = (
            type_info.model_dump(by_alias=True, exclude_none=True)
            if type_info is not None
            else None
        )
        return response


__all__ = [
    "CompletionProxy",
    "PRETTIFY_REQUEST_META",
    "PRETTIFY_RESPONSE_FIELD",
    "PrettifyOptions",
    "PrettifyRequest",
    "TypeInfoProvider",
    "empty_completion_info",
    "is_prettify_request",
    "parse_prettify_request",
]

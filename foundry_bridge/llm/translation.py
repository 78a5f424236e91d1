"""
Translation between the host's Gemini content model and chat-completions JSON

Outbound: GenerateContentParameters → chat-completions request payload
Inbound:  chat-completions response / stream chunk → GenerateContentResponse

Provider payloads stay plain dicts; host-side values are google-genai types.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import pydantic
from google.genai import types

from .base import JSON, GenerateContentParameters
from .errors import EmptyResponseError, MalformedResponseError, ToolArgumentsError

if TYPE_CHECKING:
    from .streaming import ToolCallAccumulator

logger = logging.getLogger(__name__)


_FINISH_REASONS: dict[str, types.FinishReason] = {
    "stop": types.FinishReason.STOP,
    "length": types.FinishReason.MAX_TOKENS,
    "tool_calls": types.FinishReason.STOP,
    "content_filter": types.FinishReason.SAFETY,
}


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------

def _as_part(item: Any) -> types.Part | None:
    if isinstance(item, types.Part):
        return item
    if isinstance(item, str):
        return types.Part(text=item)
    if isinstance(item, dict) and item:
        try:
            return types.Part.model_validate(item)
        except pydantic.ValidationError:
            return None
    return None


def _is_user_part(part: types.Part) -> bool:
    return part.function_call is None


def normalize_contents(contents: Any) -> list[types.Content]:
    """
    Coerce the accepted ContentListUnion shapes into a list of Content.

    Turns are grouped the way google-genai groups them: a Content (or a
    Content dict) is one turn, a nested list of parts is one user turn, and
    each run of consecutive bare parts or strings is one turn, user unless
    the run holds function calls, in which case it is a model turn.
    """
    if contents is None:
        return []
    if not isinstance(contents, list):
        contents = [contents]

    out: list[types.Content] = []
    run: list[types.Part] = []

    def flush() -> None:
        if run:
            role = "user" if all(map(_is_user_part, run)) else "model"
            out.append(types.Content(role=role, parts=list(run)))
            run.clear()

    for item in contents:
        if isinstance(item, types.Content):
            flush()
            out.append(item)
        elif isinstance(item, list):
            flush()
            parts = [p for p in map(_as_part, item) if p is not None]
            out.append(types.Content(role="user", parts=parts))
        elif (part := _as_part(item)) is not None:
            if run and _is_user_part(part) != all(map(_is_user_part, run)):
                flush()
            run.append(part)
        elif isinstance(item, dict):
            flush()
            out.append(types.Content.model_validate(item))
        else:
            logger.debug("Skipping unsupported content item: %s", type(item).__name__)
    flush()
    return out


def _system_text(instruction: Any) -> str:
    if isinstance(instruction, str):
        return instruction
    if isinstance(instruction, types.Part):
        return instruction.text or ""
    if isinstance(instruction, types.Content):
        return "".join(p.text for p in instruction.parts or [] if p.text)
    if isinstance(instruction, list):
        return "".join(_system_text(item) for item in instruction)
    return ""


def _part_to_text(part: types.Part) -> str:
    if part.text:
        return part.text
    if part.function_call:
        call = part.function_call
        return f"Function call: {call.name}({_compact_json(call.args)})"
    if part.function_response:
        return f"Function response: {_compact_json(part.function_response.response)}"
    return ""


def parts_to_content(parts: list[types.Part] | None) -> str:
    """Flatten a turn's parts into one string, preserving order."""
    return "".join(_part_to_text(p) for p in parts or [])


def _lowercase_types(node: Any) -> Any:
    # Schema enums serialize as "OBJECT", "STRING", ...; JSON schema wants lowercase
    if isinstance(node, list):
        return [_lowercase_types(item) for item in node]
    if not isinstance(node, dict):
        return node
    updated: dict[str, Any] = {}
    for key, value in node.items():
        if key == "type" and isinstance(value, str):
            updated[key] = value.lower()
        else:
            updated[key] = _lowercase_types(value)
    return updated


def _declaration_parameters(func: types.FunctionDeclaration) -> Any:
    if func.parameters_json_schema is not None:
        return func.parameters_json_schema
    if func.parameters is not None:
        return _lowercase_types(
            func.parameters.model_dump(mode="json", by_alias=True, exclude_none=True)
        )
    return None


def to_chat_tools(tools: list[Any] | None) -> list[JSON]:
    """Flatten every function declaration of every tool into chat tool specs."""
    res: list[JSON] = []
    for tool in tools or []:
        declarations = getattr(tool, "function_declarations", None)
        if not declarations:
            continue
        for func in declarations:
            fn: JSON = {"name": func.name}
            if func.description is not None:
                fn["description"] = func.description
            params = _declaration_parameters(func)
            if params is not None:
                fn["parameters"] = params
            res.append({"type": "function", "function": fn})
    return res


def to_chat_request(
    request: GenerateContentParameters,
    *,
    deployment: str,
    max_tokens: int,
) -> JSON:
    """
    Build a chat-completions payload from a generation request.

    The request's own model field is ignored; the deployment is fixed by
    the generator.
    """
    config = request.config
    messages: list[JSON] = []

    if config is not None and config.system_instruction:
        messages.append(
            {"role": "system", "content": _system_text(config.system_instruction)}
        )

    for content in normalize_contents(request.contents):
        role = "assistant" if content.role == "model" else "user"
        messages.append({"role": role, "content": parts_to_content(content.parts)})

    payload: JSON = {
        "model": deployment,
        "messages": messages,
        "max_tokens": max_tokens,
    }
    if config is not None:
        if config.temperature is not None:
            payload["temperature"] = config.temperature
        if config.top_p is not None:
            payload["top_p"] = config.top_p
        if tools := to_chat_tools(config.tools):
            payload["tools"] = tools
    return payload


def serialize_contents(contents: list[types.Content]) -> str:
    """Compact JSON of the contents, camelCase keys, unset fields omitted."""
    return _compact_json(
        [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in contents]
    )


# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------

def convert_finish_reason(reason: Any) -> types.FinishReason:
    """Map a chat-completions finish_reason; unknown values and None become OTHER."""
    if not isinstance(reason, str):
        return types.FinishReason.OTHER
    return _FINISH_REASONS.get(reason, types.FinishReason.OTHER)


def parse_tool_arguments(name: str, arguments: str) -> dict[str, Any]:
    """Parse a tool call's JSON argument string; raise ToolArgumentsError."""
    try:
        args = json.loads(arguments)
    except (TypeError, json.JSONDecodeError) as e:
        raise ToolArgumentsError(name, arguments) from e
    if not isinstance(args, dict):
        raise ToolArgumentsError(name, arguments)
    return args


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _choice_index(choice: JSON, default: int | None) -> int | None:
    index = choice.get("index")
    if isinstance(index, int) and not isinstance(index, bool):
        return index
    return default


def _first_choice(data: JSON) -> Any:
    # Anything other than a non-empty list counts as no choices
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    return choices[0]


def _convert_usage(usage: Any) -> types.GenerateContentResponseUsageMetadata | None:
    if not usage or not isinstance(usage, dict):
        return None
    return types.GenerateContentResponseUsageMetadata(
        prompt_token_count=usage.get("prompt_tokens"),
        candidates_token_count=usage.get("completion_tokens"),
        total_token_count=usage.get("total_tokens"),
    )


def _candidate(parts: list[types.Part], finish_reason: Any, index: int | None) -> types.Candidate:
    return types.Candidate(
        content=types.Content(parts=parts, role="model"),
        finish_reason=convert_finish_reason(finish_reason),
        index=index,
    )


def _reply_tool_call(call: Any) -> types.FunctionCall:
    if not isinstance(call, dict) or not isinstance(call.get("function"), dict):
        raise MalformedResponseError(f"Malformed tool call in Azure Foundry response: {call!r}")
    fn = call["function"]
    name = fn.get("name")
    if not isinstance(name, str):
        raise MalformedResponseError(f"Tool call without a name in Azure Foundry response: {call!r}")
    args = parse_tool_arguments(name, fn.get("arguments", ""))
    return types.FunctionCall(id=_str_or_none(call.get("id")), name=name, args=args)


def from_chat_response(data: Any) -> types.GenerateContentResponse:
    """
    Convert a unary chat-completions reply. Only the first choice is
    translated.

    Raises:
        EmptyResponseError: no choices (missing, empty or not a list).
        MalformedResponseError: the reply, its first choice, the message or
            a tool call does not have the chat-completions shape.
        ToolArgumentsError: a tool call's arguments are not a JSON object.
    """
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Azure Foundry response is not a JSON object: {type(data).__name__}"
        )
    choice = _first_choice(data)
    if choice is None:
        raise EmptyResponseError("No choices in Azure Foundry response")
    if not isinstance(choice, dict):
        raise MalformedResponseError(f"Malformed choice in Azure Foundry response: {choice!r}")

    message = choice.get("message") or {}
    if not isinstance(message, dict):
        raise MalformedResponseError(f"Malformed message in Azure Foundry response: {message!r}")

    parts: list[types.Part] = []
    content = message.get("content")
    if content is not None and not isinstance(content, str):
        raise MalformedResponseError(f"Malformed message content in Azure Foundry response: {content!r}")
    if content:
        parts.append(types.Part(text=content))

    tool_calls = message.get("tool_calls") or []
    if not isinstance(tool_calls, list):
        raise MalformedResponseError(f"Malformed tool_calls in Azure Foundry response: {tool_calls!r}")
    parts.extend(types.Part(function_call=_reply_tool_call(call)) for call in tool_calls)

    return types.GenerateContentResponse(
        candidates=[_candidate(parts, choice.get("finish_reason"), _choice_index(choice, None))],
        usage_metadata=_convert_usage(data.get("usage")),
        response_id=_str_or_none(data.get("id")),
        model_version=_str_or_none(data.get("model")),
    )


def _complete_fragment_call(fragment: Any) -> types.FunctionCall | None:
    if not isinstance(fragment, dict):
        logger.debug("Dropping malformed tool call fragment: %.100r", fragment)
        return None
    fn = fragment.get("function")
    if not isinstance(fn, dict):
        return None
    name = fn.get("name")
    arguments = fn.get("arguments")
    if not name or not arguments or not isinstance(name, str) or not isinstance(arguments, str):
        return None
    try:
        args = parse_tool_arguments(name, arguments)
    except ToolArgumentsError:
        logger.debug("Dropping tool call fragment with incomplete arguments: %s", name)
        return None
    return types.FunctionCall(id=_str_or_none(fragment.get("id")), name=name, args=args)


def from_stream_chunk(
    chunk: JSON, accumulator: ToolCallAccumulator | None = None
) -> types.GenerateContentResponse | None:
    """
    Convert one streamed chunk; None when it carries nothing to yield.

    Without an accumulator a tool call must arrive whole (name and full
    arguments) in a single fragment; anything else is dropped. With one,
    fragments are merged across chunks and emitted once they resolve.
    A chunk whose choice or delta is not an object yields nothing.
    """
    choice = _first_choice(chunk)
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not delta or not isinstance(delta, dict):
        return None

    parts: list[types.Part] = []
    text = delta.get("content")
    if text and isinstance(text, str):
        parts.append(types.Part(text=text))

    fragments = delta.get("tool_calls") or []
    if not isinstance(fragments, list):
        fragments = []
    if accumulator is not None:
        calls = accumulator.add(fragments)
    else:
        calls = [c for c in map(_complete_fragment_call, fragments) if c is not None]
    parts.extend(types.Part(function_call=c) for c in calls)

    if not parts:
        return None

    return types.GenerateContentResponse(
        candidates=[_candidate(parts, choice.get("finish_reason"), _choice_index(choice, 0))]
    )

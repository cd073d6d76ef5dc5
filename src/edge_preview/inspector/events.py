"""Devtools protocol events and their terminal rendering.

The remote sandbox reports console calls and uncaught exceptions as JSON
frames of the form ``{"method": ..., "params": ...}``. Console arguments are
"remote objects": primitives carry their value, while objects only carry a
depth-limited preview. Both are modelled as closed tagged unions so that an
unknown object subtype lands in an explicit fallback arm instead of failing.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    Discriminator,
    Field,
    RootModel,
    Tag,
    ValidationError,
)

from edge_preview.exceptions import MalformedEvent, UnrecognizedEvent

CONSOLE_API_CALLED = "Runtime.consoleAPICalled"
EXCEPTION_THROWN = "Runtime.exceptionThrown"

UNHANDLED_TYPE = "unhandled type"

# Object subtypes rendered by their description alone
DESCRIBED_SUBTYPES = frozenset(
    {
        "regexp",
        "date",
        "set",
        "weakmap",
        "weakset",
        "iterator",
        "generator",
        "error",
        "proxy",
        "promise",
        "typedarray",
        "arraybuffer",
        "dataview",
    }
)


class _Rendered(BaseModel):
    """Base for everything that renders to a line of terminal text."""

    def render(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.render()


# ---------- Primitive values ----------


class StringMessage(_Rendered):
    type: Literal["string"] = "string"
    value: str | None = None
    description: str | None = None

    def render(self) -> str:
        text = self.description if self.description is not None else (self.value or "")
        return f'"{text}"'


class NumberMessage(_Rendered):
    type: Literal["number"] = "number"
    value: Any = None
    description: str | None = None
    unserializable_value: str | None = Field(default=None, alias="unserializableValue")

    def render(self) -> str:
        # The runtime's own formatting; a parsed float would print 1e+21
        if self.description is not None:
            return self.description
        # NaN, Infinity and -0 only arrive as text
        if self.unserializable_value is not None:
            return self.unserializable_value
        return "" if self.value is None else str(self.value)


class BigIntMessage(_Rendered):
    type: Literal["bigint"] = "bigint"
    description: str | None = None
    unserializable_value: str | None = Field(default=None, alias="unserializableValue")
    value: Any = None

    def render(self) -> str:
        if self.description is not None:
            return self.description
        if self.unserializable_value is not None:
            return self.unserializable_value
        return "" if self.value is None else str(self.value)


class BooleanMessage(_Rendered):
    type: Literal["boolean"] = "boolean"
    value: bool | None = None
    description: str | None = None

    def render(self) -> str:
        if self.value is None:
            return self.description or ""
        return "true" if self.value else "false"


class SymbolMessage(_Rendered):
    type: Literal["symbol"] = "symbol"
    description: str | None = None
    value: Any = None

    def render(self) -> str:
        if self.description is not None:
            return self.description
        return "" if self.value is None else str(self.value)


class FunctionMessage(_Rendered):
    type: Literal["function"] = "function"
    description: str | None = None
    value: Any = None

    def render(self) -> str:
        if self.description is not None:
            return self.description
        return "" if self.value is None else str(self.value)


class UndefinedMessage(_Rendered):
    type: Literal["undefined"] = "undefined"

    def render(self) -> str:
        return "undefined"


# ---------- Objects ----------


class _ObjectBase(_Rendered):
    description: str | None = None
    # Property previews carry their text here instead of in description
    value: Any = None

    def _text(self) -> str:
        if self.description is not None:
            return self.description
        return "" if self.value is None else str(self.value)


class PropertyPreview(_Rendered):
    """One named property of a plain object preview."""

    name: str
    type: str
    value: str | None = None
    subtype: str | None = None

    def render(self) -> str:
        # The runtime only sends a type tag for non-string properties
        if self.type == "string":
            return f'"{self.name}": "{self.value or ""}"'
        return f"[{self.type} {self.name}]"


class ObjectPreview(BaseModel):
    type: str = "object"
    subtype: str | None = None
    description: str | None = None
    overflow: bool = False
    properties: list[PropertyPreview] = Field(default_factory=list)


class PlainObject(_ObjectBase):
    preview: ObjectPreview | None = None
    # Present when the object is itself a preview (map entries)
    properties: list[PropertyPreview] | None = None
    overflow: bool = False

    @property
    def truncated(self) -> bool:
        return self.preview.overflow if self.preview else self.overflow

    def render(self) -> str:
        properties = self.preview.properties if self.preview else self.properties
        if properties is None:
            return self._text() or "{}"
        if not properties:
            return "{}"
        return "{" + ", ".join(prop.render() for prop in properties) + "}"


class ArrayPreview(BaseModel):
    overflow: bool = False
    properties: list[LogMessage] = Field(default_factory=list)

    def render(self) -> str:
        return "[" + ", ".join(item.render() for item in self.properties) + "]"


class ArrayData(_ObjectBase):
    subtype: Literal["array"] = "array"
    preview: ArrayPreview | None = None

    def render(self) -> str:
        parts = [self._text()]
        if self.preview is not None:
            parts.append(self.preview.render())
        return " ".join(part for part in parts if part)


class MapEntry(BaseModel):
    key: LogMessage
    value: LogMessage

    def render(self) -> str:
        return f"{self.key.render()} => {self.value.render()}"


class MapPreview(BaseModel):
    overflow: bool = False
    entries: list[MapEntry] = Field(default_factory=list)

    def render(self) -> str:
        if not self.entries:
            return "{}"
        return "{" + ", ".join(entry.render() for entry in self.entries) + "}"


class MapData(_ObjectBase):
    subtype: Literal["map"] = "map"
    preview: MapPreview | None = None

    def render(self) -> str:
        parts = [self._text()]
        if self.preview is not None:
            parts.append(self.preview.render())
        return " ".join(part for part in parts if part)


class NullData(_ObjectBase):
    subtype: Literal["null"] = "null"

    def render(self) -> str:
        return "null"


class DescribedSubtype(_ObjectBase):
    """Built-ins whose description already reads well (``/ab+c/``, ``Set(2)``...)."""

    subtype: str

    def render(self) -> str:
        return self._text()


class UnhandledSubtype(_ObjectBase):
    subtype: str | None = None

    def render(self) -> str:
        return UNHANDLED_TYPE


def _object_tag(value: Any) -> str:
    if isinstance(value, dict):
        subtype = value.get("subtype")
    else:
        subtype = getattr(value, "subtype", None)
    if subtype is None:
        return "object"
    if subtype in ("array", "map", "null"):
        return subtype
    if subtype in DESCRIBED_SUBTYPES:
        return "described"
    return "unhandled"


ObjectData = Annotated[
    Union[
        Annotated[PlainObject, Tag("object")],
        Annotated[ArrayData, Tag("array")],
        Annotated[MapData, Tag("map")],
        Annotated[NullData, Tag("null")],
        Annotated[DescribedSubtype, Tag("described")],
        Annotated[UnhandledSubtype, Tag("unhandled")],
    ],
    Discriminator(_object_tag),
]


class ObjectMessage(RootModel[ObjectData]):
    """A ``type: object`` value, dispatched on its ``subtype``."""

    def render(self) -> str:
        return self.root.render()

    def __str__(self) -> str:
        return self.render()


def _message_tag(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("type")
    if isinstance(value, ObjectMessage):
        return "object"
    return getattr(value, "type", None)


LogMessage = Annotated[
    Union[
        Annotated[ObjectMessage, Tag("object")],
        Annotated[NumberMessage, Tag("number")],
        Annotated[BigIntMessage, Tag("bigint")],
        Annotated[BooleanMessage, Tag("boolean")],
        Annotated[StringMessage, Tag("string")],
        Annotated[SymbolMessage, Tag("symbol")],
        Annotated[UndefinedMessage, Tag("undefined")],
        Annotated[FunctionMessage, Tag("function")],
    ],
    Discriminator(_message_tag),
]


# ---------- Events ----------


class ConsoleEvent(_Rendered):
    log_type: str = Field(alias="type")
    messages: list[LogMessage] = Field(alias="args")

    def render(self) -> str:
        return "".join(message.render() for message in self.messages)


class ExceptionInfo(BaseModel):
    description: str | None = None


class ExceptionDetails(BaseModel):
    text: str
    exception: ExceptionInfo = Field(default_factory=ExceptionInfo)


class ExceptionEvent(_Rendered):
    details: ExceptionDetails = Field(alias="exceptionDetails")

    def render(self) -> str:
        text = self.details.text
        if self.details.exception.description is not None:
            text += f"\n{self.details.exception.description}"
        return text


class ConsoleAPICalled(_Rendered):
    method: Literal["Runtime.consoleAPICalled"] = CONSOLE_API_CALLED
    params: ConsoleEvent

    def render(self) -> str:
        return self.params.render()


class ExceptionThrown(_Rendered):
    method: Literal["Runtime.exceptionThrown"] = EXCEPTION_THROWN
    params: ExceptionEvent

    def render(self) -> str:
        return self.params.render()


DevtoolsEvent = ConsoleAPICalled | ExceptionThrown

_EVENT_MODELS: dict[str, type[ConsoleAPICalled] | type[ExceptionThrown]] = {
    CONSOLE_API_CALLED: ConsoleAPICalled,
    EXCEPTION_THROWN: ExceptionThrown,
}

ArrayPreview.model_rebuild()
MapEntry.model_rebuild()
MapPreview.model_rebuild()
ArrayData.model_rebuild()
MapData.model_rebuild()
ObjectMessage.model_rebuild()
ConsoleEvent.model_rebuild()
ConsoleAPICalled.model_rebuild()


def decode(raw: str | bytes) -> DevtoolsEvent:
    """Decode one websocket frame into a devtools event.

    Raises ``UnrecognizedEvent`` for methods this client does not render
    (including command replies, which have no method) and ``MalformedEvent``
    when the frame is not JSON or a known event fails validation.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedEvent(f"frame is not valid JSON: {e}", text) from e
    if not isinstance(payload, dict):
        raise MalformedEvent("frame is not a JSON object", text)

    method = payload.get("method")
    model = _EVENT_MODELS.get(method) if isinstance(method, str) else None
    if model is None:
        raise UnrecognizedEvent(method, text)

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedEvent(f"could not parse {method} event: {e}", text) from e

"""Tests for decoding and rendering devtools events."""

from __future__ import annotations

import json
from typing import Any

import pytest
from conftest import console_frame

from edge_preview.exceptions import MalformedEvent, UnrecognizedEvent
from edge_preview.inspector.events import (
    UNHANDLED_TYPE,
    ConsoleAPICalled,
    ExceptionThrown,
    decode,
)


def _render(*args: dict[str, Any]) -> str:
    event = decode(json.dumps(console_frame("log", *args)))
    return event.render()


class TestPrimitives:
    def test_string_is_quoted(self) -> None:
        assert _render({"type": "string", "value": "hello"}) == '"hello"'

    def test_number(self) -> None:
        assert _render({"type": "number", "value": 42, "description": "42"}) == "42"

    def test_large_number_uses_runtime_formatting(self) -> None:
        arg = {"type": "number", "value": 1e21, "description": "1000000000000000000000"}
        assert _render(arg) == "1000000000000000000000"

    def test_number_without_description(self) -> None:
        assert _render({"type": "number", "value": 7}) == "7"

    def test_unserializable_number(self) -> None:
        assert _render({"type": "number", "unserializableValue": "NaN", "description": "NaN"}) == "NaN"

    def test_bigint(self) -> None:
        assert _render({"type": "bigint", "unserializableValue": "10n", "description": "10n"}) == "10n"

    @pytest.mark.parametrize(("value", "expected"), [(True, "true"), (False, "false")])
    def test_boolean(self, value: bool, expected: str) -> None:
        assert _render({"type": "boolean", "value": value}) == expected

    def test_symbol(self) -> None:
        assert _render({"type": "symbol", "description": "Symbol(tag)"}) == "Symbol(tag)"

    def test_function(self) -> None:
        assert _render({"type": "function", "description": "function f() {}"}) == "function f() {}"

    def test_undefined(self) -> None:
        assert _render({"type": "undefined"}) == "undefined"

    def test_args_are_concatenated(self) -> None:
        rendered = _render(
            {"type": "string", "value": "count: "},
            {"type": "number", "value": 3, "description": "3"},
        )
        assert rendered == '"count: "3'


class TestObjects:
    def test_plain_object_preview(self) -> None:
        arg = {
            "type": "object",
            "className": "Object",
            "description": "Object",
            "preview": {
                "type": "object",
                "description": "Object",
                "overflow": False,
                "properties": [
                    {"name": "a", "type": "number", "value": "1"},
                    {"name": "b", "type": "string", "value": "two"},
                ],
            },
        }
        assert _render(arg) == '{[number a], "b": "two"}'

    def test_empty_plain_object(self) -> None:
        arg = {"type": "object", "preview": {"type": "object", "properties": []}}
        assert _render(arg) == "{}"

    def test_array(self) -> None:
        arg = {
            "type": "object",
            "subtype": "array",
            "description": "Array(2)",
            "preview": {
                "overflow": False,
                "properties": [
                    {"type": "number", "value": 1, "description": "1"},
                    {"type": "string", "value": "x"},
                ],
            },
        }
        assert _render(arg) == 'Array(2) [1, "x"]'

    def test_array_without_preview(self) -> None:
        arg = {"type": "object", "subtype": "array", "description": "Array(0)"}
        assert _render(arg) == "Array(0)"

    def test_map(self) -> None:
        arg = {
            "type": "object",
            "subtype": "map",
            "description": "Map(1)",
            "preview": {
                "overflow": False,
                "entries": [
                    {
                        "key": {"type": "string", "value": "k"},
                        "value": {"type": "number", "value": 1, "description": "1"},
                    }
                ],
            },
        }
        assert _render(arg) == 'Map(1) {"k" => 1}'

    def test_empty_map(self) -> None:
        arg = {
            "type": "object",
            "subtype": "map",
            "description": "Map(0)",
            "preview": {"entries": []},
        }
        assert _render(arg) == "Map(0) {}"

    def test_null(self) -> None:
        assert _render({"type": "object", "subtype": "null", "value": None}) == "null"

    @pytest.mark.parametrize(
        ("subtype", "description"),
        [
            ("regexp", "/ab+c/"),
            ("date", "Mon Jan 01 2024"),
            ("set", "Set(2)"),
            ("weakmap", "WeakMap"),
            ("weakset", "WeakSet"),
            ("iterator", "Array Iterator"),
            ("generator", "Generator"),
            ("error", "Error: boom"),
            ("proxy", "Proxy"),
            ("promise", "Promise"),
            ("typedarray", "Uint8Array(4)"),
            ("arraybuffer", "ArrayBuffer(8)"),
            ("dataview", "DataView(8)"),
        ],
    )
    def test_described_subtypes(self, subtype: str, description: str) -> None:
        arg = {"type": "object", "subtype": subtype, "description": description}
        assert _render(arg) == description

    def test_unknown_subtype_falls_back(self) -> None:
        arg = {"type": "object", "subtype": "wasmvalue", "description": "i32"}
        assert _render(arg) == UNHANDLED_TYPE

    def test_nested_object_in_array(self) -> None:
        arg = {
            "type": "object",
            "subtype": "array",
            "description": "Array(1)",
            "preview": {
                "properties": [{"type": "object", "subtype": "null", "value": None}],
            },
        }
        assert _render(arg) == "Array(1) [null]"


class TestEvents:
    def test_console_event_carries_log_type(self) -> None:
        event = decode(json.dumps(console_frame("error", {"type": "string", "value": "bad"})))
        assert isinstance(event, ConsoleAPICalled)
        assert event.params.log_type == "error"
        assert str(event) == '"bad"'

    def test_exception_event(self) -> None:
        frame = {
            "method": "Runtime.exceptionThrown",
            "params": {
                "timestamp": 1.0,
                "exceptionDetails": {
                    "exceptionId": 1,
                    "text": "Uncaught",
                    "exception": {"type": "object", "description": "Error: boom\n    at f"},
                },
            },
        }
        event = decode(json.dumps(frame))
        assert isinstance(event, ExceptionThrown)
        assert event.render() == "Uncaught\nError: boom\n    at f"

    def test_exception_without_description(self) -> None:
        frame = {
            "method": "Runtime.exceptionThrown",
            "params": {"exceptionDetails": {"text": "Uncaught"}},
        }
        assert decode(frame_bytes(frame)).render() == "Uncaught"

    def test_bytes_frame(self) -> None:
        frame = console_frame("log", {"type": "undefined"})
        assert decode(frame_bytes(frame)).render() == "undefined"


class TestDecodeErrors:
    def test_unknown_method(self) -> None:
        with pytest.raises(UnrecognizedEvent) as excinfo:
            decode(json.dumps({"method": "Debugger.scriptParsed", "params": {}}))
        assert excinfo.value.method == "Debugger.scriptParsed"

    def test_command_reply_has_no_method(self) -> None:
        with pytest.raises(UnrecognizedEvent):
            decode(json.dumps({"id": 1, "result": {}}))

    def test_not_json(self) -> None:
        with pytest.raises(MalformedEvent) as excinfo:
            decode("{not json")
        assert excinfo.value.raw == "{not json"

    def test_not_an_object(self) -> None:
        with pytest.raises(MalformedEvent):
            decode("[1, 2]")

    def test_missing_params(self) -> None:
        with pytest.raises(MalformedEvent):
            decode(json.dumps({"method": "Runtime.consoleAPICalled"}))

    def test_unknown_argument_type(self) -> None:
        with pytest.raises(MalformedEvent):
            decode(json.dumps(console_frame("log", {"type": "wat"})))


def frame_bytes(frame: dict[str, Any]) -> bytes:
    return json.dumps(frame).encode("utf-8")

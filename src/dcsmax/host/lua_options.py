"""Reader for DCS World's ``options.lua``.

DCS saves its settings as a single Lua assignment::

    options = {
        ["graphics"] = {
            ["visibRange"] = "High",
            ["msaaMaskSize"] = 0.42,
            ["shadows"] = 4,
        },
        ["plugins"] = {},
    }

Only the data subset of Lua that such files use is understood: table
constructors, string / number / boolean / nil literals and comments. No
expressions are evaluated.

Conversion to JSON-compatible data: tables keyed exactly ``1..n`` become
lists, every other table (including ``{}``) becomes a dict with string keys;
nil-valued fields are dropped as in Lua.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from dcsmax.core.errors import ConfigStoreError, OptionsParseError

_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_HEX = re.compile(r"0[xX][0-9a-fA-F]+")
_DECIMAL = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_DIGITS = re.compile(r"\d{1,3}")
_UNICODE_ESCAPE = re.compile(r"u\{([0-9a-fA-F]+)\}")

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "\\": "\\",
    '"': '"',
    "'": "'",
}

_KEYWORD_VALUES = {"true": True, "false": False, "nil": None}

_WHITESPACE = " \t\r\n\f\v"


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.end = len(text)

    # -- errors / scanning -------------------------------------------------

    def error(self, message: str) -> OptionsParseError:
        line = self.text.count("\n", 0, self.pos) + 1
        return OptionsParseError(f"{message} (line {line})")

    def skip(self) -> None:
        """Skip whitespace and comments."""
        text = self.text
        while self.pos < self.end:
            if text[self.pos] in _WHITESPACE:
                self.pos += 1
            elif text.startswith("--", self.pos):
                self.pos += 2
                level = self._long_bracket_level()
                if level is not None:
                    self._read_long_bracket(level)
                else:
                    newline = text.find("\n", self.pos)
                    self.pos = self.end if newline == -1 else newline + 1
            else:
                break

    def peek(self) -> str:
        self.skip()
        return self.text[self.pos] if self.pos < self.end else ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            found = self.text[self.pos] if self.pos < self.end else "end of file"
            raise self.error(f"expected '{char}' near '{found}'")
        self.pos += 1

    def read_name(self) -> str | None:
        match = _NAME.match(self.text, self.pos)
        if match is None:
            return None
        self.pos = match.end()
        return match.group()

    def _long_bracket_level(self) -> int | None:
        """Level of a ``[[`` / ``[==[`` opener at the cursor, else None."""
        if self.text[self.pos:self.pos + 1] != "[":
            return None
        probe = self.pos + 1
        while probe < self.end and self.text[probe] == "=":
            probe += 1
        if self.text[probe:probe + 1] != "[":
            return None
        return probe - self.pos - 1

    def _read_long_bracket(self, level: int) -> str:
        start = self.pos + level + 2
        close = "]" + "=" * level + "]"
        stop = self.text.find(close, start)
        if stop == -1:
            raise self.error("unfinished long string or comment")
        self.pos = stop + len(close)
        content = self.text[start:stop]
        # A newline right after the opener is not part of the string
        if content.startswith("\r\n"):
            return content[2:]
        if content.startswith("\n"):
            return content[1:]
        return content

    # -- grammar -----------------------------------------------------------

    def parse_chunk(self) -> dict[str, Any]:
        assignments: dict[str, Any] = {}
        while True:
            self.skip()
            if self.pos >= self.end:
                return assignments
            name = self.read_name()
            if name is None or name in _KEYWORD_VALUES:
                raise self.error("expected an assignment")
            self.expect("=")
            assignments[name] = self.parse_value()
            if self.peek() == ";":
                self.pos += 1

    def parse_value(self) -> Any:
        char = self.peek()
        if char == "{":
            return self.parse_table()
        if char in ("'", '"'):
            return self.read_string()
        if char == "[":
            level = self._long_bracket_level()
            if level is None:
                raise self.error("unexpected '['")
            return self._read_long_bracket(level)
        if char == "-":
            self.pos += 1
            self.skip()
            value = self.read_number()
            return -value
        if char == "." or char.isdigit():
            return self.read_number()
        if not char:
            raise self.error("unexpected end of file")
        name = self.read_name()
        if name in _KEYWORD_VALUES:
            return _KEYWORD_VALUES[name]
        raise self.error(f"unexpected '{name or char}'")

    def read_number(self) -> int | float:
        match = _HEX.match(self.text, self.pos)
        if match is not None:
            self.pos = match.end()
            return int(match.group(), 16)
        match = _DECIMAL.match(self.text, self.pos)
        if match is None:
            raise self.error("malformed number")
        self.pos = match.end()
        literal = match.group()
        if any(c in literal for c in ".eE"):
            return float(literal)
        return int(literal)

    def read_string(self) -> str:
        text = self.text
        quote = text[self.pos]
        self.pos += 1
        parts: list[str] = []
        while True:
            if self.pos >= self.end or text[self.pos] == "\n":
                raise self.error("unfinished string")
            char = text[self.pos]
            if char == quote:
                self.pos += 1
                return "".join(parts)
            if char != "\\":
                parts.append(char)
                self.pos += 1
                continue

            self.pos += 1
            esc = text[self.pos:self.pos + 1]
            if esc in _ESCAPES:
                parts.append(_ESCAPES[esc])
                self.pos += 1
            elif esc in ("\n", "\r"):
                parts.append("\n")
                self.pos += 1
                if esc == "\r" and text[self.pos:self.pos + 1] == "\n":
                    self.pos += 1
            elif esc == "x":
                digits = text[self.pos + 1:self.pos + 3]
                if len(digits) != 2 or not all(c in "0123456789abcdefABCDEF" for c in digits):
                    raise self.error("hexadecimal digit expected")
                parts.append(chr(int(digits, 16)))
                self.pos += 3
            elif esc == "z":
                self.pos += 1
                while self.pos < self.end and text[self.pos] in _WHITESPACE:
                    self.pos += 1
            elif esc.isdigit():
                match = _DIGITS.match(text, self.pos)
                assert match is not None
                parts.append(chr(int(match.group())))
                self.pos = match.end()
            elif esc == "u":
                match = _UNICODE_ESCAPE.match(text, self.pos)
                if match is None:
                    raise self.error("malformed unicode escape")
                parts.append(chr(int(match.group(1), 16)))
                self.pos = match.end()
            else:
                raise self.error("invalid escape sequence")

    def parse_table(self) -> Any:
        self.expect("{")
        fields: dict[Any, Any] = {}
        next_index = 1
        while True:
            char = self.peek()
            if char == "}":
                self.pos += 1
                return _table_to_json(fields)
            if not char:
                raise self.error("unfinished table")

            if char == "[" and self._long_bracket_level() is None:
                self.pos += 1
                key = _normalize_key(self.parse_value())
                if key is None:
                    raise self.error("table index is nil")
                self.expect("]")
                self.expect("=")
                fields[key] = self.parse_value()
            else:
                saved = self.pos
                name = self.read_name()
                if (
                    name is not None
                    and name not in _KEYWORD_VALUES
                    and self.peek() == "="
                    and self.text[self.pos + 1:self.pos + 2] != "="
                ):
                    self.pos += 1
                    fields[name] = self.parse_value()
                else:
                    self.pos = saved
                    fields[next_index] = self.parse_value()
                    next_index += 1

            separator = self.peek()
            if separator in (",", ";"):
                self.pos += 1
            elif separator != "}":
                raise self.error("expected ',' or '}'")


def _normalize_key(key: Any) -> Any:
    # Lua stores 2.0 and 2 under the same key
    if isinstance(key, float) and key.is_integer():
        return int(key)
    return key


def _json_key(key: Any) -> str:
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, str):
        return key
    return str(key)


def _table_to_json(fields: dict[Any, Any]) -> Any:
    present = {k: v for k, v in fields.items() if v is not None}
    keys = list(present)
    if keys and all(type(k) is int for k in keys) and sorted(keys) == list(range(1, len(keys) + 1)):
        return [present[i] for i in range(1, len(keys) + 1)]
    return {_json_key(k): v for k, v in present.items()}


def parse_lua_assignments(text: str) -> dict[str, Any]:
    """Parse a chunk of ``name = <constant>`` assignments.

    Raises:
        OptionsParseError: On anything outside the supported subset.
    """
    return _Parser(text).parse_chunk()


def parse_options(text: str) -> Any:
    """Return the ``options`` table of an options.lua text.

    Raises:
        OptionsParseError: If the text does not parse or assigns no options.
    """
    try:
        assignments = parse_lua_assignments(text.lstrip("\ufeff"))
    except OptionsParseError as exc:
        raise OptionsParseError(f"Invalid options.lua: {exc}") from exc
    if "options" not in assignments:
        raise OptionsParseError("Invalid options.lua: no 'options' table found")
    return assignments["options"]


def read_options_file(path: Path) -> Any:
    """Read and parse an options.lua file.

    Raises:
        ConfigStoreError: If the file does not exist.
        OptionsParseError: If it is not a valid options file.
    """
    if not path.is_file():
        raise ConfigStoreError(f"File not found: {path}")
    with open(path, encoding="utf-8", errors="replace") as f:
        return parse_options(f.read())


__all__ = ["parse_lua_assignments", "parse_options", "read_options_file"]

"""Configuration file of "key: value" directives."""

from __future__ import annotations

import math
import re
import sys
from typing import Any, Iterable, Mapping, Optional, Union

DIRECTIVES = (
    "interface",
    "dns-resolution",
    "port-resolution",
    "filter-code",
    "show-bars",
    "promiscuous",
    "hide-source",
    "hide-destination",
    "use-bytes",
    "bandwidth-unit",
    "sort",
    "line-display",
    "show-totals",
    "log-scale",
    "max-bandwidth",
    "net-filter",
    "net-filter6",
    "link-local",
    "port-display",
    "timed-output",
    "no-curses",
    "num-lines",
    "http-port",
)

_LONG_MIN = -(2**63)
_LONG_MAX = 2**63 - 1
_INT_PATTERN = re.compile(r"[ \t\n\v\f\r]*[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(
    r"[ \t\n\v\f\r]*[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?"
    r"|inf(?:inity)?|nan)",
    re.IGNORECASE,
)
_KEY_PATTERN = re.compile(r"[^ \t:]*")
_COMMENT_PATTERN = re.compile(r"[#\n]")


def is_valid_directive(name: str) -> bool:
    return name in DIRECTIVES


def _warn(message: str) -> None:
    print(message, file=sys.stderr)


class Config:
    """Directive values read from files or set directly."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def read_file(self, path: Any, whinge: bool = False) -> bool:
        """Read directives from path. Returns False if the file can't be opened.

        When whinge is true an unopenable file is reported on stderr.
        Directives already present keep their earlier value.
        """
        try:
            handle = open(path, encoding="utf-8", errors="replace")
        except OSError as exc:
            if whinge:
                _warn(f"{path}: {exc.strerror or exc}")
            return False
        with handle:
            lines = iter(handle)
            for number, raw in enumerate(lines, start=1):
                line = raw.rstrip("\n")
                while line.endswith("\\"):
                    following = next(lines, None)
                    if following is None:
                        break
                    line = line[:-1] + following.rstrip("\n")
                self._parse_line(path, number, line)
        return True

    def _parse_line(self, path: Any, number: int, line: str) -> None:
        line = _COMMENT_PATTERN.split(line, maxsplit=1)[0]
        _, colon, after = line.partition(":")
        if not colon:
            return
        key = _KEY_PATTERN.match(line.lstrip(" \t")).group()
        if not key:
            return
        value = after.strip(" \t")
        if not is_valid_directive(key):
            _warn(f'{path}:{number}: warning: unknown directive "{key}"')
        elif key in self._values:
            _warn(f'{path}:{number}: warning: repeated directive "{key}"')
        else:
            self._values[key] = value

    def get_string(self, directive: str) -> Optional[str]:
        return self._values.get(directive)

    def get_bool(self, directive: str) -> bool:
        """True only for the values "yes" and "true"."""
        return self.get_string(directive) in ("yes", "true")

    def get_int(self, directive: str) -> Optional[int]:
        """Integer value, None if unset; ValueError if malformed or out of range."""
        text = self.get_string(directive)
        if text is None:
            return None
        if not _INT_PATTERN.fullmatch(text):
            raise ValueError(f'invalid integer "{text}" for directive "{directive}"')
        number = int(text)
        if not _LONG_MIN <= number <= _LONG_MAX:
            raise ValueError(f'integer "{text}" out of range for directive "{directive}"')
        return number

    def get_float(self, directive: str) -> Optional[float]:
        """Float value, None if unset; ValueError if malformed or overflowing."""
        text = self.get_string(directive)
        if text is None:
            return None
        if not _FLOAT_PATTERN.fullmatch(text):
            raise ValueError(f'invalid number "{text}" for directive "{directive}"')
        number = float(text)
        if math.isinf(number) and "inf" not in text.lower():
            raise ValueError(f'number "{text}" out of range for directive "{directive}"')
        return number

    def get_enum(
        self,
        directive: str,
        enumeration: Union[Mapping[str, Any], Iterable[tuple[str, Any]]],
    ) -> Any:
        """Value that the directive's name maps to, None if unset.

        Raises ValueError when the name is not one of the enumeration's.
        """
        text = self.get_string(directive)
        if text is None:
            return None
        choices = dict(enumeration)
        if text not in choices:
            raise ValueError(f'Invalid enumeration value "{text}" for directive "{directive}"')
        return choices[text]

    def set_string(self, directive: str, value: str) -> None:
        """Set a directive, replacing any earlier value."""
        self._values[directive] = value
"""A small levelled logger writing coloured lines to standard error."""

from __future__ import annotations

import enum
import sys
import time
import traceback
from typing import Any

_COLOR_OFF = "\033[0m"
_COLOR_RED = "\033[0;31m"
_COLOR_GREEN = "\033[0;32m"
_COLOR_ORANGE = "\033[0;33m"
_COLOR_PURPLE = "\033[0;35m"
_COLOR_CYAN = "\033[0;36m"


class LogLevel(enum.IntEnum):
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    NONE = 5
    TRACE = 6


def _format(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "<nil>"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format(item) for item in value) + "]"
    return str(value)


def _render(args: tuple[Any, ...]) -> str:
    if not args:
        return ""
    if len(args) == 1:
        return _format(args[0])
    pieces = []
    for index, arg in enumerate(args):
        if index and not isinstance(arg, str) and not isinstance(args[index - 1], str):
            pieces.append(" ")
        pieces.append(_format(arg))
    return "".join(pieces).strip("[]")


class Logger:
    """Writes ``[level] prefix - message`` lines for levels at or above its own."""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        self.level = LogLevel.DEBUG
        self._nocolor = False

    def no_color(self, nocolor: bool = True) -> "Logger":
        self._nocolor = nocolor
        return self

    @property
    def color(self) -> bool:
        return not self._nocolor

    def set_prefix(self, prefix: str) -> "Logger":
        self.prefix = prefix
        return self

    def set_level(self, level: LogLevel) -> "Logger":
        self.level = level
        return self

    def _colorize(self, color: str, text: str) -> str:
        if self._nocolor:
            return text
        return color + text + _COLOR_OFF

    def _emit(self, color: str, label: str, args: tuple[Any, ...], tail: str = "") -> None:
        stamp = time.strftime("%Y/%m/%d %H:%M:%S")
        line = f"{stamp} {self._colorize(color, label)} {self.prefix} - {_render(args)}{tail}"
        print(line, file=sys.stderr)

    def error(self, *args: Any) -> None:
        if self.level <= LogLevel.ERROR:
            self._emit(_COLOR_RED, "[error]", args)

    def warn(self, *args: Any) -> None:
        if self.level <= LogLevel.WARN:
            self._emit(_COLOR_ORANGE, "[warn] ", args)

    def info(self, *args: Any) -> None:
        if self.level <= LogLevel.INFO:
            self._emit(_COLOR_GREEN, "[info] ", args)

    def debug(self, *args: Any) -> None:
        if self.level <= LogLevel.DEBUG:
            self._emit(_COLOR_PURPLE, "[debug]", args)

    def trace(self, *args: Any) -> None:
        if self.level <= LogLevel.TRACE:
            self._emit(_COLOR_CYAN, "[trace]", args)

    def panic(self, *args: Any) -> None:
        """Log the message with the current stack, whatever the level."""
        stack = "".join(traceback.format_stack())
        self._emit(_COLOR_CYAN, "[panic]", args, " \n " + self._colorize(_COLOR_ORANGE, stack))
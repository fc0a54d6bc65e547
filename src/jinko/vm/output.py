"""Output with a capture stack."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.compiler.instructions import CaptureMode
from jinko.environment.escape import AutoEscape
from jinko.value import UNDEFINED, Value

if TYPE_CHECKING:
    from collections.abc import Callable


class Output:
    """Text sink for a render.

    Writes go to the innermost capture, or to ``write`` when nothing is
    being captured. A capture is either a list of chunks or ``None`` for
    a discarding capture.
    """

    __slots__ = ("_capture_stack", "_write")

    def __init__(self, write: Callable[[str], object]):
        self._write = write
        self._capture_stack: list[list[str] | None] = []

    def write(self, text: str) -> None:
        if self._capture_stack:
            target = self._capture_stack[-1]
            if target is not None:
                target.append(text)
        else:
            self._write(text)

    def is_discarding(self) -> bool:
        return bool(self._capture_stack) and self._capture_stack[-1] is None

    def begin_capture(self, mode: CaptureMode) -> None:
        self._capture_stack.append([] if mode is CaptureMode.CAPTURE else None)

    def end_capture(self, auto_escape: AutoEscape) -> Value:
        """Pop the innermost capture and return what it collected.

        The text is a safe string unless auto-escaping is off; discarding
        captures return undefined.
        """
        if not self._capture_stack:
            return UNDEFINED
        chunks = self._capture_stack.pop()
        if chunks is None:
            return UNDEFINED
        text = "".join(chunks)
        if auto_escape is AutoEscape.NONE:
            return Value.from_str(text)
        return Value.from_safe_str(text)

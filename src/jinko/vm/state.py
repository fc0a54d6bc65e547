"""Per-render state shared by the VM and `pass_state` functions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jinko.compiler.instructions import Instructions
    from jinko.environment.core import Environment
    from jinko.environment.escape import AutoEscape
    from jinko.environment.undefined import UndefinedBehavior
    from jinko.value import Value
    from jinko.vm.context import Context


class BlockStack:
    """Overriding versions of one block, most derived first.

    ``depth`` points at the version currently executing; ``super()``
    moves it one step towards the base template.
    """

    __slots__ = ("_depth", "_instructions")

    def __init__(self, instructions: Instructions):
        self._instructions = [instructions]
        self._depth = 0

    def instructions(self) -> Instructions:
        return self._instructions[self._depth]

    def push(self) -> bool:
        if self._depth + 1 < len(self._instructions):
            self._depth += 1
            return True
        return False

    def pop(self) -> None:
        self._depth = max(self._depth - 1, 0)

    def append(self, instructions: Instructions) -> None:
        self._instructions.append(instructions)


def prepare_blocks(blocks: dict[str, Instructions]) -> dict[str, BlockStack]:
    return {name: BlockStack(instructions) for name, instructions in blocks.items()}


class State:
    """Render state.

    Functions decorated with `pass_state` receive this object. The
    attributes callers may rely on are ``env``, ``name``,
    ``auto_escape``, ``current_block`` and `lookup`.
    """

    __slots__ = (
        "auto_escape",
        "blocks",
        "ctx",
        "current_block",
        "env",
        "instructions",
        "loaded_templates",
    )

    def __init__(
        self,
        env: Environment,
        ctx: Context,
        auto_escape: AutoEscape,
        instructions: Instructions,
        blocks: dict[str, BlockStack],
    ):
        self.env = env
        self.ctx = ctx
        self.current_block: str | None = None
        self.auto_escape = auto_escape
        self.instructions = instructions
        self.blocks = blocks
        self.loaded_templates: set[str] = {instructions.name}

    @property
    def name(self) -> str:
        """Name of the template being executed."""
        return self.instructions.name

    @property
    def undefined_behavior(self) -> UndefinedBehavior:
        return self.env.undefined_behavior

    def lookup(self, name: str) -> Value | None:
        """Resolve a variable the way the template itself would."""
        return self.ctx.load(self.env, name)

    def __repr__(self) -> str:
        return f"<State name={self.name!r} current_block={self.current_block!r}>"

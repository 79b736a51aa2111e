"""SMOL runtime: small-step execution of the SMOL IR.

Entry point::

    from smol.runtime import load

    interp = load(program)
    while interp.step().continues:
        pass
    print(interp.state)
"""

from __future__ import annotations

from collections.abc import Callable

from smol.model.program import Program

from ._interpreter import Interpreter, RunResult, StepOutcome
from ._state import Frame, Heap, RuntimeState
from ._static import StaticTable
from ._validate import check_program, validate_program
from ._values import ObjectRef, Value


def load(
    program: Program,
    *,
    output: Callable[[str], None] | None = None,
) -> Interpreter:
    """Build the static table, validate *program* and prepare the main frame.

    Parameters
    ----------
    program
        The program IR.
    output
        Receives each printed line (default ``print``).

    Returns
    -------
    Interpreter
        An interpreter without a semantic bridge; use
        ``smol.session.open_session`` for ``member``/``access`` support.
    """
    static = StaticTable.from_program(program)
    validate_program(program, static)
    state = RuntimeState.for_main(program.main)
    return Interpreter(state, static, output=output)


__all__ = [
    "Frame",
    "Heap",
    "Interpreter",
    "ObjectRef",
    "RunResult",
    "RuntimeState",
    "StaticTable",
    "StepOutcome",
    "Value",
    "check_program",
    "load",
    "validate_program",
]

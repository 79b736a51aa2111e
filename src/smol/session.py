"""Session: the command surface for driving a SMOL program.

A session owns one interpreter, its semantic bridge and the mutable
``TripleSettings`` they share.  Every command returns a
``CommandResult``; failures are reported on the command that caused
them and leave the session usable.

Entry point::

    from smol.session import open_session

    session = open_session(program)
    session.auto()
    print(session.examine().value)
    rows = session.query("SELECT ?obj WHERE { ?obj a prog:Layer }").value
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TextIO

from pydantic import BaseModel, Field

from smol.errors import SmolError
from smol.model.expressions import Expression
from smol.model.program import Program
from smol.runtime import Interpreter, RuntimeState, StaticTable, validate_program
from smol.semantic import Namespaces, Reasoner, SemanticBridge, TripleSettings


logger = logging.getLogger(__name__)


class SessionConfig(BaseModel):
    """Configuration of a session.

    Parameters
    ----------
    verbose : bool
        Log every step and the duration of every command at DEBUG.
    namespaces : Namespaces
        Prefix IRIs for lifting and queries.
    ontology : str, optional
        Text of the external domain ontology.
    ontology_location : str, optional
        File path or URL of the ontology, used when *ontology* is unset.
    ontology_format : str, optional
        rdflib parser name (``turtle``, ``xml``, ...).
    triple_settings : TripleSettings
        Initial source, guard, virtualization and reasoner settings.
    """

    verbose: bool = False
    namespaces: Namespaces = Field(default_factory=Namespaces)
    ontology: str | None = None
    ontology_location: str | None = None
    ontology_format: str | None = None
    triple_settings: TripleSettings = Field(default_factory=TripleSettings)


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    value: Any = None
    error: Exception | None = None


class Session:
    """Interactive-style control over one program run.

    Parameters
    ----------
    interpreter : Interpreter
        Interpreter with a semantic bridge attached.
    config : SessionConfig
        The configuration the session was opened with.
    """

    def __init__(self, interpreter: Interpreter, config: SessionConfig) -> None:
        if interpreter.bridge is None:
            raise ValueError("A session needs an interpreter with a semantic bridge")
        self.interpreter = interpreter
        self.bridge: SemanticBridge = interpreter.bridge
        self.config = config

    @property
    def state(self) -> RuntimeState:
        return self.interpreter.state

    @property
    def settings(self) -> TripleSettings:
        return self.interpreter.triple_settings

    # -----------------------------------------------------------------------
    # Command plumbing
    # -----------------------------------------------------------------------

    def _run(self, name: str, action: Callable[[], Any]) -> CommandResult:
        start = time.perf_counter()
        try:
            value = action()
        except (SmolError, ValueError) as exc:
            logger.warning("command '%s' failed: %s", name, exc)
            return CommandResult(ok=False, error=exc)
        finally:
            if self.config.verbose:
                logger.debug(
                    "command '%s' took %.3f ms", name, (time.perf_counter() - start) * 1000,
                )
        return CommandResult(ok=True, value=value)

    # -----------------------------------------------------------------------
    # Execution
    # -----------------------------------------------------------------------

    def step(self) -> CommandResult:
        """Execute one step; the value is the ``StepOutcome``."""
        result = self._run("step", self.interpreter.step)
        outcome = result.value
        if outcome is not None and outcome.error is not None:
            return CommandResult(ok=False, value=outcome, error=outcome.error)
        return result

    def auto(self, max_steps: int | None = None) -> CommandResult:
        """Run until the program ends, halts or fails; the value is the ``RunResult``."""
        result = self._run("auto", lambda: self.interpreter.run(max_steps))
        run = result.value
        if run is not None and run.outcome.error is not None:
            return CommandResult(ok=False, value=run, error=run.outcome.error)
        return result

    def eval(self, expr: Expression) -> CommandResult:
        """Evaluate *expr* in the top frame."""
        return self._run("eval", lambda: self.interpreter.eval_top(expr))

    # -----------------------------------------------------------------------
    # Inspection
    # -----------------------------------------------------------------------

    def examine(self) -> CommandResult:
        """Rendered heap, simulation store and stack."""
        return self._run("examine", lambda: str(self.state))

    def info(self) -> CommandResult:
        """Rendered static table."""
        return self._run("info", lambda: str(self.interpreter.static))

    # -----------------------------------------------------------------------
    # Semantic commands
    # -----------------------------------------------------------------------

    def query(self, sparql: str, params: Sequence[Any] = ()) -> CommandResult:
        """SPARQL SELECT over the current graph; ``%1`` .. ``%n`` bind *params*."""
        return self._run(
            "query",
            lambda: self.bridge.query(self.bridge.bind_parameters(sparql, params), self.settings),
        )

    def class_members(self, expression: str) -> CommandResult:
        return self._run(
            "class_members", lambda: self.bridge.class_members(expression, self.settings),
        )

    def consistency(self) -> CommandResult:
        return self._run("consistency", lambda: self.bridge.check_consistency(self.settings))

    def dump(self, sink: TextIO, format: str = "turtle") -> CommandResult:
        """Write the current graph to *sink*; the value is the triple count."""
        return self._run("dump", lambda: self.bridge.dump(sink, self.settings, format))

    # -----------------------------------------------------------------------
    # Settings
    # -----------------------------------------------------------------------

    def set_source(self, source: str, enabled: bool) -> CommandResult:
        return self._run("set_source", lambda: self._update(self.settings.set_source, source, enabled))

    def set_guard(self, source: str, enabled: bool) -> CommandResult:
        return self._run("set_guard", lambda: self._update(self.settings.set_guard, source, enabled))

    def set_virtualization(self, source: str, enabled: bool) -> CommandResult:
        return self._run(
            "set_virtualization",
            lambda: self._update(self.settings.set_virtualization, source, enabled),
        )

    def set_reasoner(self, mode: str) -> CommandResult:
        return self._run("set_reasoner", lambda: self._update(self.settings.set_reasoner, mode))

    def _update(self, setter: Callable[..., None], *args: Any) -> TripleSettings:
        setter(*args)
        return self.settings


def open_session(
    program: Program,
    config: SessionConfig | None = None,
    *,
    reasoner: Reasoner | None = None,
    output: Callable[[str], None] | None = None,
) -> Session:
    """Load *program* and return a session ready to step it.

    Parameters
    ----------
    program
        The program IR.
    config
        Session configuration (default ``SessionConfig()``).
    reasoner
        Reasoner used when the reasoner mode is not ``off``.
    output
        Receives each printed line (default ``print``).

    Raises
    ------
    StructuralError
        The program fails validation.
    """
    config = config or SessionConfig()
    if config.verbose:
        logging.getLogger("smol").setLevel(logging.DEBUG)

    static = StaticTable.from_program(program)
    validate_program(program, static)
    state = RuntimeState.for_main(program.main)
    bridge = SemanticBridge(
        state,
        static,
        config.namespaces,
        ontology=config.ontology,
        ontology_location=config.ontology_location,
        ontology_format=config.ontology_format,
        reasoner=reasoner,
    )
    interpreter = Interpreter(
        state,
        static,
        bridge=bridge,
        triple_settings=config.triple_settings,
        output=output,
    )
    logger.info("session opened: %d class(es), run prefix %s", len(static.classes()), config.namespaces.run)
    return Session(interpreter, config)

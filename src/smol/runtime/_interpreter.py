"""Small-step interpreter for the SMOL IR.

Each call to ``Interpreter.step()`` pops the top frame, evaluates the
head of its continuation and applies the resulting next-action:

- ``Rewrite(residual)``: the head is replaced by *residual* (possibly
  empty) and the frame goes back on the stack;
- ``Spawn(callee, residual)``: as ``Rewrite``, then *callee* is pushed on
  top of it;
- ``Return(value)``: the frame is dropped and *value* is delivered to the
  caller waiting beneath it;
- ``Halt(residual)``: as ``Rewrite`` but run-to-completion stops.

Composite statements rewrite themselves into simpler ones, so there is
no recursion over statement structure and every step is observable.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from smol.errors import BridgeError, EvaluationError, StructuralError
from smol.model.expressions import BinaryOp, Expression, UnaryOp
from smol.model.types import base_type

from ._state import Frame, RuntimeState
from ._static import StaticTable
from ._values import ObjectRef, Value, parse_literal, render, type_name

if TYPE_CHECKING:
    from smol.semantic._bridge import SemanticBridge
    from smol.semantic._settings import TripleSettings


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Residual statements (only ever created by the interpreter)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AwaitReturn:
    """Caller-side marker: the frame above will deliver a value here."""

    target: Expression | None
    declares: str | None = None
    kind: ClassVar[str] = "await_return"


@dataclass(frozen=True)
class AssignValue:
    """Assignment of an already-computed runtime value."""

    target: Expression
    value: Value
    declares: str | None = None
    kind: ClassVar[str] = "assign_value"


# ---------------------------------------------------------------------------
# Next-actions and outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rewrite:
    residual: tuple = ()


@dataclass(frozen=True)
class Spawn:
    callee: Frame
    residual: tuple = ()


@dataclass(frozen=True)
class Return:
    value: Value = None


@dataclass(frozen=True)
class Halt:
    residual: tuple = ()


@dataclass(frozen=True)
class StepOutcome:
    """Result of one step.

    *continues* is False when the stack is empty, a breakpoint was hit,
    or the step failed (then *error* is set and the state is unchanged
    apart from the failing statement's own partial effects).
    """

    continues: bool
    error: EvaluationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RunResult:
    steps: int
    outcome: StepOutcome


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------

class Interpreter:
    """Drives a ``RuntimeState`` one statement at a time.

    Parameters
    ----------
    state : RuntimeState
        Stack and heap.  Mutated in place.
    static : StaticTable
        Class tables; must not be empty.
    bridge : SemanticBridge, optional
        Needed by ``member`` and ``access`` statements.
    triple_settings : TripleSettings, optional
        Settings passed to every bridge call.  May be replaced between
        steps; defaults to ``TripleSettings()`` when a bridge is given.
    output : callable, optional
        Receives each line printed by the program (default ``print``).
    """

    def __init__(
        self,
        state: RuntimeState,
        static: StaticTable,
        *,
        bridge: SemanticBridge | None = None,
        triple_settings: TripleSettings | None = None,
        output: Callable[[str], None] | None = None,
    ) -> None:
        if static.is_empty:
            raise StructuralError("Cannot start the interpreter with an empty static table")
        if bridge is not None and triple_settings is None:
            from smol.semantic._settings import TripleSettings
            triple_settings = TripleSettings()
        self.state = state
        self.static = static
        self.bridge = bridge
        self.triple_settings = triple_settings
        self.output = output or print

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def step(self) -> StepOutcome:
        """Execute exactly one step."""
        state = self.state
        if not state.stack:
            return StepOutcome(continues=False)

        frame = state.pop()
        if not frame.active:
            logger.debug("frame %d falls off", frame.id)
            self._deliver(None)
            return StepOutcome(continues=bool(state.stack))

        stmt = frame.active[0]
        logger.debug("frame %d executes %s", frame.id, stmt.kind)
        try:
            action = self._exec_stmt(stmt, frame)
        except EvaluationError as exc:
            if exc.statement is None:
                exc.statement = stmt
            return self._fail(frame, exc)
        except (BridgeError, ArithmeticError) as exc:
            error = EvaluationError(str(exc), stmt)
            error.__cause__ = exc
            return self._fail(frame, error)

        return self._apply(frame, action)

    def run(self, max_steps: int | None = None) -> RunResult:
        """Step until the program ends, halts, fails or *max_steps* is reached."""
        steps = 0
        outcome = StepOutcome(continues=bool(self.state.stack))
        while max_steps is None or steps < max_steps:
            if not self.state.stack:
                outcome = StepOutcome(continues=False)
                break
            outcome = self.step()
            if outcome.ok:
                steps += 1
            if not outcome.continues:
                break
        return RunResult(steps=steps, outcome=outcome)

    def run_to_completion(self) -> RunResult:
        return self.run()

    def eval_top(self, expr: Expression) -> Value:
        """Evaluate *expr* in the frame on top of the stack."""
        frame = self.state.top
        if frame is None:
            raise EvaluationError("No frame to evaluate in")
        try:
            return self._eval(expr, frame)
        except ArithmeticError as exc:
            raise EvaluationError(str(exc)) from exc

    # -----------------------------------------------------------------------
    # Driver helpers
    # -----------------------------------------------------------------------

    def _fail(self, frame: Frame, error: EvaluationError) -> StepOutcome:
        self.state.push(frame)
        logger.warning("step failed in frame %d: %s", frame.id, error)
        return StepOutcome(continues=False, error=error)

    def _apply(self, frame: Frame, action: object) -> StepOutcome:
        rest = frame.active[1:]
        if isinstance(action, Return):
            self._deliver(action.value)
            return StepOutcome(continues=bool(self.state.stack))

        frame.active = tuple(action.residual) + rest
        self.state.push(frame)
        if isinstance(action, Spawn):
            self.state.push(action.callee)
        elif isinstance(action, Halt):
            return StepOutcome(continues=False)
        return StepOutcome(continues=True)

    def _deliver(self, value: Value) -> None:
        """Hand a return value to the caller waiting on the stack top."""
        caller = self.state.top
        if caller is None or not caller.active or caller.active[0].kind != "await_return":
            return
        marker = caller.active[0]
        if marker.target is None:
            caller.active = caller.active[1:]
        else:
            assign = AssignValue(target=marker.target, value=value, declares=marker.declares)
            caller.active = (assign,) + caller.active[1:]

    # -----------------------------------------------------------------------
    # Statement dispatch
    # -----------------------------------------------------------------------

    def _exec_stmt(self, stmt, frame: Frame):
        handler = self._STMT_DISPATCH.get(stmt.kind)
        if handler is None:
            raise EvaluationError(f"Unsupported statement kind: {stmt.kind}")
        return handler(self, stmt, frame)

    def _exec_assignment(self, stmt, frame: Frame) -> Rewrite:
        value = self._eval(stmt.value, frame)
        self._write(stmt.target, value, frame)
        return Rewrite()

    def _exec_assign_value(self, stmt: AssignValue, frame: Frame) -> Rewrite:
        self._write(stmt.target, stmt.value, frame)
        return Rewrite()

    def _exec_if(self, stmt, frame: Frame) -> Rewrite:
        if self._eval_condition(stmt.condition, frame):
            return Rewrite(tuple(stmt.then_body))
        return Rewrite(tuple(stmt.else_body))

    def _exec_while(self, stmt, frame: Frame) -> Rewrite:
        if self._eval_condition(stmt.condition, frame):
            return Rewrite((*stmt.body, stmt))
        return Rewrite()

    def _exec_call(self, stmt, frame: Frame) -> Spawn:
        receiver = self._require_object(
            self._eval(stmt.callee, frame), f"calling method '{stmt.method}'",
        )
        method = self.static.resolve_method(receiver.tag, stmt.method)
        if method is None:
            raise EvaluationError(
                f"Class '{receiver.tag}' has no method '{stmt.method}'"
            )
        args = [self._eval(arg, frame) for arg in stmt.args]
        if len(args) != len(method.params):
            raise EvaluationError(
                f"Method '{receiver.tag}.{stmt.method}' expects "
                f"{len(method.params)} argument(s), got {len(args)}"
            )
        if stmt.target is not None:
            self._resolve_location(stmt.target, frame)

        store = {p.name: v for p, v in zip(method.params, args)}
        callee = self.state.new_frame(method.body, store, receiver)
        return Spawn(callee, (AwaitReturn(stmt.target, stmt.declares),))

    def _exec_new(self, stmt, frame: Frame):
        class_name = base_type(stmt.class_name)
        if not self.static.has_class(class_name):
            raise EvaluationError(f"Unknown class '{stmt.class_name}'")
        if class_name in self.static.abstract_classes:
            raise EvaluationError(f"Cannot instantiate abstract class '{class_name}'")

        fields = self.static.fields_of(class_name)
        args = [self._eval(arg, frame) for arg in stmt.args]
        if len(args) != len(fields):
            raise EvaluationError(
                f"Constructor of '{class_name}' expects {len(fields)} "
                f"argument(s), got {len(args)}"
            )
        init = self.static.resolve_method(class_name, "init")
        if init is not None and init.params:
            raise EvaluationError(f"Method '{class_name}.init' must not take parameters")
        container, key = self._resolve_location(stmt.target, frame)

        ref = self.state.heap.allocate(class_name, {f.name: v for f, v in zip(fields, args)})
        logger.debug("allocated %s : %s", ref.name, class_name)

        if init is None:
            container[key] = ref
            return Rewrite()
        callee = self.state.new_frame(init.body, {}, ref)
        return Spawn(
            callee,
            (AwaitReturn(None), AssignValue(stmt.target, ref, stmt.declares)),
        )

    def _exec_return(self, stmt, frame: Frame) -> Return:
        value = self._eval(stmt.value, frame) if stmt.value is not None else None
        return Return(value)

    def _exec_print(self, stmt, frame: Frame) -> Rewrite:
        self.output(render(self._eval(stmt.value, frame)))
        return Rewrite()

    def _exec_skip(self, _stmt, _frame: Frame) -> Rewrite:
        return Rewrite()

    def _exec_breakpoint(self, _stmt, frame: Frame) -> Halt:
        logger.info("breakpoint reached in frame %d", frame.id)
        return Halt()

    def _exec_member(self, stmt, frame: Frame) -> Rewrite:
        query = self._query_string(stmt.query, frame)
        bridge = self._require_bridge()
        self._resolve_location(stmt.target, frame)
        members = bridge.class_members(query, self.triple_settings)
        head = bridge.lower(members)
        return Rewrite((AssignValue(stmt.target, head, stmt.declares),))

    def _exec_access(self, stmt, frame: Frame) -> Rewrite:
        query = self._query_string(stmt.query, frame)
        bridge = self._require_bridge()
        params = [self._eval(p, frame) for p in stmt.params]
        self._resolve_location(stmt.target, frame)
        result = bridge.query(bridge.bind_parameters(query, params), self.triple_settings)
        head = bridge.lower(result.column())
        return Rewrite((AssignValue(stmt.target, head, stmt.declares),))

    # Statement dispatch table
    _STMT_DISPATCH: dict[str, Callable] = {
        "assignment": _exec_assignment,
        "assign_value": _exec_assign_value,
        "if": _exec_if,
        "while": _exec_while,
        "call": _exec_call,
        "new": _exec_new,
        "return": _exec_return,
        "print": _exec_print,
        "skip": _exec_skip,
        "breakpoint": _exec_breakpoint,
        "member": _exec_member,
        "access": _exec_access,
    }

    def _require_bridge(self) -> SemanticBridge:
        if self.bridge is None:
            raise EvaluationError("No semantic bridge configured for this interpreter")
        return self.bridge

    def _query_string(self, expr: Expression, frame: Frame) -> str:
        if expr.kind != "literal":
            raise EvaluationError("Please provide a string literal as the query")
        value = self._eval(expr, frame)
        if not isinstance(value, str):
            raise EvaluationError("Please provide a string literal as the query")
        return value

    # -----------------------------------------------------------------------
    # Expression dispatch
    # -----------------------------------------------------------------------

    def _eval(self, expr: Expression, frame: Frame) -> Value:
        handler = self._EXPR_DISPATCH.get(expr.kind)
        if handler is None:
            raise EvaluationError(f"Unsupported expression kind: {expr.kind}")
        return handler(self, expr, frame)

    def _eval_literal(self, expr, _frame: Frame) -> Value:
        return parse_literal(expr.value, expr.data_type)

    def _eval_variable_ref(self, expr, frame: Frame) -> Value:
        if expr.name in frame.store:
            return frame.store[expr.name]
        raise EvaluationError(f"Unbound variable '{expr.name}'")

    def _eval_this(self, _expr, frame: Frame) -> Value:
        return frame.obj

    def _eval_field_access(self, expr, frame: Frame) -> Value:
        ref = self._require_object(self._eval(expr.target, frame), f"reading field '{expr.field}'")
        fields = self.state.heap[ref]
        if expr.field not in fields:
            raise EvaluationError(
                f"Object {ref.name} of class '{ref.tag}' has no field '{expr.field}'"
            )
        return fields[expr.field]

    def _eval_binary(self, expr, frame: Frame) -> Value:
        op = expr.op
        left = self._eval(expr.left, frame)
        if op in (BinaryOp.AND, BinaryOp.OR):
            self._require_bool(left, op)
            if (op == BinaryOp.AND and not left) or (op == BinaryOp.OR and left):
                return left
            right = self._eval(expr.right, frame)
            self._require_bool(right, op)
            return right
        right = self._eval(expr.right, frame)
        return self._apply_binop(op, left, right)

    def _apply_binop(self, op: BinaryOp, left: Value, right: Value) -> Value:
        if op == BinaryOp.EQ:
            return left == right and type(left) is type(right)
        if op == BinaryOp.NE:
            return not (left == right and type(left) is type(right))

        if op == BinaryOp.ADD and isinstance(left, str) and isinstance(right, str):
            return left + right

        if op in (BinaryOp.LT, BinaryOp.LE, BinaryOp.GT, BinaryOp.GE):
            comparable = (
                (_is_number(left) and _is_number(right))
                or (isinstance(left, str) and isinstance(right, str))
            )
            if not comparable:
                raise self._mismatch(op, left, right)
            if op == BinaryOp.LT:
                return left < right
            if op == BinaryOp.LE:
                return left <= right
            if op == BinaryOp.GT:
                return left > right
            return left >= right

        if not (_is_number(left) and _is_number(right)):
            raise self._mismatch(op, left, right)
        if op == BinaryOp.ADD:
            return left + right
        if op == BinaryOp.SUB:
            return left - right
        if op == BinaryOp.MUL:
            return left * right
        if op in (BinaryOp.DIV, BinaryOp.MOD) and right == 0:
            raise EvaluationError("Division by zero")
        if isinstance(left, float) or isinstance(right, float):
            if op == BinaryOp.DIV:
                return left / right
            if op == BinaryOp.MOD:
                return math.fmod(left, right)
        elif op in (BinaryOp.DIV, BinaryOp.MOD):
            quotient = _truncated_div(left, right)
            return quotient if op == BinaryOp.DIV else left - right * quotient

        raise EvaluationError(f"Unsupported binary op: {op}")

    def _eval_unary(self, expr, frame: Frame) -> Value:
        operand = self._eval(expr.operand, frame)
        if expr.op == UnaryOp.NEG:
            if not _is_number(operand):
                raise EvaluationError(f"Cannot negate a value of type {type_name(operand)}")
            return -operand
        if expr.op == UnaryOp.NOT:
            self._require_bool(operand, expr.op)
            return not operand
        raise EvaluationError(f"Unsupported unary op: {expr.op}")

    # Expression dispatch table
    _EXPR_DISPATCH: dict[str, Callable] = {
        "literal": _eval_literal,
        "variable_ref": _eval_variable_ref,
        "this": _eval_this,
        "field_access": _eval_field_access,
        "binary": _eval_binary,
        "unary": _eval_unary,
    }

    # -----------------------------------------------------------------------
    # Checks and write helpers
    # -----------------------------------------------------------------------

    def _eval_condition(self, expr: Expression, frame: Frame) -> bool:
        value = self._eval(expr, frame)
        if not isinstance(value, bool):
            raise EvaluationError(f"Condition must be Boolean, got {type_name(value)}")
        return value

    def _require_object(self, value: Value, doing: str) -> ObjectRef:
        if value is None:
            raise EvaluationError(f"Null dereference {doing}")
        if not isinstance(value, ObjectRef):
            raise EvaluationError(f"Expected an object {doing}, got {type_name(value)}")
        if value not in self.state.heap:
            raise EvaluationError(f"Dangling reference {value.name} {doing}")
        return value

    @staticmethod
    def _require_bool(value: Value, op: object) -> None:
        if not isinstance(value, bool):
            raise EvaluationError(f"Operator {op.value} expects Boolean, got {type_name(value)}")

    @staticmethod
    def _mismatch(op: BinaryOp, left: Value, right: Value) -> EvaluationError:
        return EvaluationError(
            f"Type mismatch: {type_name(left)} {op.value} {type_name(right)}"
        )

    def _resolve_location(self, target: Expression, frame: Frame) -> tuple[dict, str]:
        """Return the (container, key) pair an assignment writes to."""
        if target.kind == "variable_ref":
            return frame.store, target.name
        if target.kind == "field_access":
            ref = self._require_object(
                self._eval(target.target, frame), f"writing field '{target.field}'",
            )
            fields = self.state.heap[ref]
            if target.field not in fields:
                raise EvaluationError(
                    f"Object {ref.name} of class '{ref.tag}' has no field '{target.field}'"
                )
            return fields, target.field
        raise EvaluationError(f"Unsupported assignment target kind: {target.kind}")

    def _write(self, target: Expression, value: Value, frame: Frame) -> None:
        container, key = self._resolve_location(target, frame)
        container[key] = value


def _is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _truncated_div(left: int, right: int) -> int:
    """Integer quotient rounded toward zero."""
    quotient = abs(left) // abs(right)
    return -quotient if (left < 0) != (right < 0) else quotient

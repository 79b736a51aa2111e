"""Runtime state: call stack, object heap and simulation memory.

The heap owns every object.  Fields holding an ``ObjectRef`` are plain
lookups into it, so cyclic structures (layers pointing above and below)
need no special handling.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field

from smol.model.types import ENTRY_CLASS

from ._values import ObjectRef, Value, render


FieldMap = dict[str, Value]


@dataclass
class Frame:
    """One activation record.

    *active* is the continuation: the statements still to execute in
    this frame, head first.  A frame whose continuation is empty falls
    off the stack on its next step.
    """

    active: tuple
    store: dict[str, Value]
    obj: ObjectRef
    id: int

    def __str__(self) -> str:
        head = repr(self.active[0]) if self.active else "<done>"
        store = ", ".join(f"{k}={render(v)}" for k, v in self.store.items())
        return f"Frame {self.id} on {self.obj}: [{store}] next: {head}"


class Heap:
    """Ordered map ``ObjectRef -> FieldMap``.

    Iteration order is creation order.  Object names are minted from a
    counter and never reused within a run.
    """

    def __init__(self) -> None:
        self._objects: dict[ObjectRef, FieldMap] = {}
        self._by_name: dict[str, ObjectRef] = {}
        self._counter = 0

    def allocate(self, tag: str, fields: FieldMap | None = None) -> ObjectRef:
        ref = ObjectRef(name=f"obj{self._counter}", tag=tag)
        self._counter += 1
        self._objects[ref] = dict(fields or {})
        self._by_name[ref.name] = ref
        return ref

    def find(self, name: str) -> ObjectRef | None:
        """Look up an object by its printed identity."""
        return self._by_name.get(name)

    def __getitem__(self, ref: ObjectRef) -> FieldMap:
        return self._objects[ref]

    def __contains__(self, ref: object) -> bool:
        return ref in self._objects

    def __iter__(self) -> Iterator[ObjectRef]:
        return iter(self._objects)

    def __len__(self) -> int:
        return len(self._objects)

    def items(self):
        return self._objects.items()

    def copy_objects(self) -> dict[ObjectRef, FieldMap]:
        return {ref: dict(fields) for ref, fields in self._objects.items()}


@dataclass
class RuntimeState:
    """Stack, heap and the side map for simulation objects."""

    stack: list[Frame] = field(default_factory=list)
    heap: Heap = field(default_factory=Heap)
    sim_memory: dict[ObjectRef, object] = field(default_factory=dict)
    _frame_counter: int = 0

    @classmethod
    def for_main(cls, main: list) -> RuntimeState:
        """Create the entry object and the main frame for *main*."""
        state = cls()
        entry = state.heap.allocate(ENTRY_CLASS)
        state.push(state.new_frame(tuple(main), {}, entry))
        return state

    def new_frame(self, active: tuple, store: dict[str, Value], obj: ObjectRef) -> Frame:
        frame = Frame(active=active, store=store, obj=obj, id=self._frame_counter)
        self._frame_counter += 1
        return frame

    def push(self, frame: Frame) -> None:
        self.stack.append(frame)

    def pop(self) -> Frame:
        return self.stack.pop()

    @property
    def top(self) -> Frame | None:
        return self.stack[-1] if self.stack else None

    def snapshot(self) -> tuple:
        """Value copy of stack and heap, for comparisons."""
        frames = tuple(
            (f.id, f.obj, f.active, dict(f.store)) for f in self.stack
        )
        return frames, self.heap.copy_objects(), copy.copy(self.sim_memory)

    def __str__(self) -> str:
        lines = ["Global store:"]
        for ref, fields in self.heap.items():
            rendered = ", ".join(f"{k}={render(v)}" for k, v in fields.items())
            lines.append(f"  {ref.name} : {ref.tag} {{{rendered}}}")
        if self.sim_memory:
            lines.append("Simulation store:")
            for ref, sim in self.sim_memory.items():
                lines.append(f"  {ref.name} : {sim!r}")
        lines.append("Stack:")
        for frame in reversed(self.stack):
            lines.append(f"  {frame}")
        return "\n".join(lines)

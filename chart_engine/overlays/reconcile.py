"""
Render reconciliation.

The render surface is retained-mode: objects live until explicitly removed.
The Reconciler owns every object it creates, diffs each desired primitive
set against what it rendered last time (by key), and applies the minimal
create/update/delete calls to the sink. Deletes always go first.

``RenderDisposedError`` from the sink means the target was torn down by a
concurrent switch; it is logged at DEBUG and skipped.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Sequence, Union, runtime_checkable

from chart_engine.core.exceptions import RenderDisposedError
from chart_engine.overlays.primitives import OverlayPrimitive


@runtime_checkable
class RenderSink(Protocol):
    """External render surface."""

    def create(self, primitive: OverlayPrimitive) -> None:
        ...

    def update(self, primitive: OverlayPrimitive) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def set_series(self, kind: str, payload: Any) -> None:
        """Replace series data ('representation', 'indicator:<id>', 'markers'); None removes it."""
        ...


@dataclass(frozen=True)
class CreateOp:
    primitive: OverlayPrimitive

    @property
    def key(self) -> str:
        return self.primitive.key


@dataclass(frozen=True)
class UpdateOp:
    primitive: OverlayPrimitive

    @property
    def key(self) -> str:
        return self.primitive.key


@dataclass(frozen=True)
class DeleteOp:
    key: str


RenderOp = Union[CreateOp, UpdateOp, DeleteOp]


def diff_primitives(
    rendered: Dict[str, OverlayPrimitive], desired: Sequence[OverlayPrimitive]
) -> List[RenderOp]:
    """
    Operations that turn ``rendered`` into ``desired``.

    Raises:
        ValueError: If ``desired`` contains duplicate keys
    """
    desired_by_key: Dict[str, OverlayPrimitive] = {}
    for primitive in desired:
        if primitive.key in desired_by_key:
            raise ValueError(f"Duplicate overlay key: {primitive.key}")
        desired_by_key[primitive.key] = primitive

    ops: List[RenderOp] = [DeleteOp(key) for key in rendered if key not in desired_by_key]
    for key, primitive in desired_by_key.items():
        current = rendered.get(key)
        if current is None:
            ops.append(CreateOp(primitive))
        elif current != primitive:
            ops.append(UpdateOp(primitive))
    return ops


class Reconciler:
    """
    Keeps a RenderSink in sync with the latest desired primitive set.

    Usage:
        reconciler = Reconciler(sink)
        reconciler.reconcile(layer.build(...))
        reconciler.teardown()   # on instrument switch
    """

    def __init__(self, sink: RenderSink):
        self._sink = sink
        self._rendered: Dict[str, OverlayPrimitive] = {}
        self.logger = logging.getLogger(__name__)

    @property
    def rendered(self) -> Dict[str, OverlayPrimitive]:
        """Primitives currently owned by this reconciler, by key."""
        return dict(self._rendered)

    def reconcile(self, desired: Sequence[OverlayPrimitive]) -> List[RenderOp]:
        """Diff and apply. Returns the operations that were issued."""
        ops = diff_primitives(self._rendered, desired)
        for op in ops:
            self._apply(op)
        if ops:
            self.logger.debug("Reconciled overlays: %d ops, %d rendered", len(ops), len(self._rendered))
        return ops

    def teardown(self) -> List[RenderOp]:
        """Delete every rendered object."""
        return self.reconcile([])

    def _apply(self, op: RenderOp) -> None:
        try:
            if isinstance(op, DeleteOp):
                self._sink.delete(op.key)
            elif isinstance(op, CreateOp):
                self._sink.create(op.primitive)
            else:
                self._sink.update(op.primitive)
        except RenderDisposedError as e:
            self.logger.debug("Render object %s already disposed: %s", op.key, e)
            # Nothing is rendered under this key any more
            self._rendered.pop(op.key, None)
            return

        if isinstance(op, DeleteOp):
            self._rendered.pop(op.key, None)
        else:
            self._rendered[op.key] = op.primitive

"""Typed, nested parameter trees.

Every parameter set is a dataclass deriving from :class:`Parameters`.
Leaves carry their default in the dataclass definition; nested
parameter sets are fields whose default is another :class:`Parameters`
instance.  Overrides are merged onto the defaults, so changing one leaf
of a sub-tree never requires restating the rest of it.

Example::

    p = LinearVariationalSolver.default_parameters()
    p["linear_solver"] = "iterative"
    p.update({"krylov_solver": {"relative_tolerance": 1e-10}})
    p["krylov_solver.gmres.restart"]  # 30
"""

from __future__ import annotations

import copy
import dataclasses
import numbers
from typing import Any, Mapping

from pyvarsolve.errors import ConfigurationError


class Parameters:
    """Mixin for dataclass-based parameter trees.

    Subclasses must be decorated with :func:`dataclasses.dataclass` and
    set a class attribute ``name`` used in error messages.
    """

    name = "parameters"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Any]) -> "Parameters":
        """Build a tree of defaults and overlay *mapping* onto it."""
        params = cls()
        params.update(mapping)
        return params

    def copy(self) -> "Parameters":
        """Deep copy; the result shares no mutable state with *self*."""
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Mapping-like access
    # ------------------------------------------------------------------

    def keys(self) -> list[str]:
        """Names of the leaves and sub-trees at this level."""
        return [f.name for f in dataclasses.fields(self)]

    def __contains__(self, key: str) -> bool:
        try:
            self._locate(key)
        except ConfigurationError:
            return False
        return True

    def __getitem__(self, key: str) -> Any:
        node, leaf = self._locate(key)
        return getattr(node, leaf)

    def __setitem__(self, key: str, value: Any) -> None:
        node, leaf = self._locate(key)
        node.copy()._assign(leaf, value)
        node._assign(leaf, value)

    def to_dict(self) -> dict[str, Any]:
        """Nested plain-dict view of the tree."""
        return dataclasses.asdict(self)

    # ------------------------------------------------------------------
    # Overlay
    # ------------------------------------------------------------------

    def update(
        self,
        other: Mapping[str, Any] | "Parameters" | None = None,
        **kwargs: Any,
    ) -> None:
        """Merge overrides onto this tree.

        Nested mappings are merged into the matching sub-tree rather
        than replacing it.  The update is validated in full before any
        value changes, so a rejected update leaves the tree untouched.

        Args:
            other: Mapping (or another parameter tree) of overrides.
            **kwargs: Additional top-level overrides.

        Raises:
            ConfigurationError: On an unknown key or a value whose type
                does not match the default.
        """
        items: dict[str, Any] = {}
        if isinstance(other, Parameters):
            items.update(other.to_dict())
        elif other is not None:
            items.update(other)
        items.update(kwargs)

        self.copy()._apply(items)
        self._apply(items)

    def _apply(self, items: Mapping[str, Any]) -> None:
        known = self.keys()
        for key, value in items.items():
            if key not in known:
                raise ConfigurationError(
                    f"Unknown parameter {key!r} in {self.name!r}."
                )
            self._assign(key, value)

    def _assign(self, key: str, value: Any) -> None:
        current = getattr(self, key)
        if isinstance(current, Parameters):
            if isinstance(value, Parameters):
                if type(value) is not type(current):
                    raise ConfigurationError(
                        f"Sub-tree {key!r} of {self.name!r} expects "
                        f"{type(current).__name__}, got {type(value).__name__}."
                    )
                value = value.to_dict()
            if not isinstance(value, Mapping):
                raise ConfigurationError(
                    f"Sub-tree {key!r} of {self.name!r} can only be "
                    f"updated from a mapping, got {value!r}."
                )
            current._apply(value)
            return
        setattr(self, key, _checked(self.name, key, current, value))

    def _locate(self, key: str) -> tuple["Parameters", str]:
        *path, leaf = key.split(".")
        node: Parameters = self
        for part in path:
            child = getattr(node, part) if part in node.keys() else None
            if not isinstance(child, Parameters):
                raise ConfigurationError(
                    f"{node.name!r} has no parameter sub-tree {part!r}."
                )
            node = child
        if leaf not in node.keys():
            raise ConfigurationError(
                f"Unknown parameter {leaf!r} in {node.name!r}."
            )
        return node, leaf


def _checked(owner: str, key: str, current: Any, value: Any) -> Any:
    """Validate *value* against the type of the *current* leaf."""
    if isinstance(current, bool):
        ok = isinstance(value, bool)
    elif isinstance(current, numbers.Integral):
        ok = isinstance(value, numbers.Integral) and not isinstance(value, bool)
        value = int(value) if ok else value
    elif isinstance(current, numbers.Real):
        ok = isinstance(value, numbers.Real) and not isinstance(value, bool)
        value = float(value) if ok else value
    elif isinstance(current, str):
        ok = isinstance(value, str)
    else:
        ok = True

    if not ok:
        raise ConfigurationError(
            f"Parameter {key!r} of {owner!r} expects "
            f"{type(current).__name__}, got {value!r}."
        )
    return value

"""Container registry: the two linked containers behind one address space.

The registry owns the *leaf* container (``resources.assets``), which only
references itself and is the only container new records are appended to, and
the *dependent* container (``sharedassets1.assets``), which references the
leaf through one dependency slot.

Callers address records with :class:`LogicalIndex`. Its signed integer form
(``int(index)``) is negative (``~position``) for leaf records and
non-negative for dependent records; the mapping to ``(container, object id)``
is a bijection because record positions are stable (records are never
removed during a session).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from ..logging import get_logger, section
from ..reporting.base import get_reporter
from ..schema.fields import FieldSchema
from ..schema.loader import SchemaSource
from .constants import CLASS_MONO_BEHAVIOUR, CLASS_NAMES, NO_SCRIPT
from .container import Container, Record
from .decoder import decode
from .errors import (
    NotFoundError,
    corrupt_container,
    invalid_cross_reference,
    not_found,
)
from .references import AssetRef

__all__ = ["Side", "LogicalIndex", "ContainerRegistry"]


class Side(Enum):
    LEAF = "leaf"
    DEPENDENT = "dependent"


@dataclass(frozen=True, slots=True)
class LogicalIndex:
    side: Side
    position: int

    def __post_init__(self) -> None:
        if self.position < 0:
            raise ValueError(f"Negative record position {self.position}")

    @classmethod
    def from_int(cls, value: int) -> "LogicalIndex":
        if value < 0:
            return cls(Side.LEAF, ~value)
        return cls(Side.DEPENDENT, value)

    @classmethod
    def coerce(cls, value: "LogicalIndex | int") -> "LogicalIndex":
        return value if isinstance(value, LogicalIndex) else cls.from_int(value)

    def __int__(self) -> int:
        return ~self.position if self.side is Side.LEAF else self.position

    def __str__(self) -> str:
        return str(int(self))


class ContainerRegistry:
    """Record access, decoding cache, addressing and dirty tracking."""

    def __init__(
        self, leaf: Container, dependent: Container, schemas: SchemaSource
    ) -> None:
        self._containers: Dict[Side, Container] = {
            Side.LEAF: leaf,
            Side.DEPENDENT: dependent,
        }
        self.schemas = schemas
        # Slot through which the dependent container reaches the leaf.
        self.dependency_slot = dependent.dependency_slot(leaf.name)
        self._dirty: Dict[Side, bool] = {Side.LEAF: False, Side.DEPENDENT: False}
        self._cache: Dict[LogicalIndex, Any] = {}
        self._script_names: Dict[Tuple[Side, int], str] = {}
        self._closed = False

    @classmethod
    def open(
        cls,
        leaf_path: str | Path,
        dependent_path: str | Path,
        schemas: SchemaSource,
    ) -> "ContainerRegistry":
        leaf = Container.load(leaf_path)
        try:
            dependent = Container.load(dependent_path)
        except BaseException:
            leaf.close()
            raise
        try:
            return cls(leaf, dependent, schemas)
        except BaseException:
            leaf.close()
            dependent.close()
            raise

    # Containers -------------------------------------------------------------------
    def container(self, side: Side) -> Container:
        return self._containers[side]

    @property
    def leaf(self) -> Container:
        return self._containers[Side.LEAF]

    @property
    def dependent(self) -> Container:
        return self._containers[Side.DEPENDENT]

    def is_dirty(self, side: Side) -> bool:
        return self._dirty[side]

    def mark_dirty(self, side: Side) -> None:
        self._dirty[side] = True

    # Records ---------------------------------------------------------------------
    def get_record(self, index: LogicalIndex | int) -> Record:
        index = LogicalIndex.coerce(index)
        return self.container(index.side).get_record(index.position)

    def read_payload(self, index: LogicalIndex | int) -> bytes:
        index = LogicalIndex.coerce(index)
        container = self.container(index.side)
        return container.read_payload(container.get_record(index.position))

    def index_of(self, side: Side, object_id: int) -> LogicalIndex:
        return LogicalIndex(side, self.container(side).position_of(object_id))

    def script_name(self, side: Side, script_index: int) -> str:
        key = (side, script_index)
        cached = self._script_names.get(key)
        if cached is not None:
            return cached
        container = self.container(side)
        if not 0 <= script_index < len(container.script_types):
            raise not_found(
                f"No script type {script_index} in {container.name}"
            )
        target = self.resolve_reference(side, container.script_types[script_index])
        if target is None:
            raise corrupt_container(
                f"Script type {script_index} of {container.name} is null"
            )
        script = self.get_decoded_field(target, type_name="MonoScript")
        name = script.get("m_Name") if isinstance(script, dict) else None
        if not isinstance(name, str):
            raise corrupt_container(
                f"Script record {target} has no m_Name"
            )
        self._script_names[key] = name
        return name

    def type_name_of(self, index: LogicalIndex | int) -> str:
        index = LogicalIndex.coerce(index)
        record = self.get_record(index)
        if record.class_id == CLASS_MONO_BEHAVIOUR and record.has_script:
            return self.script_name(index.side, record.script_index)
        try:
            return CLASS_NAMES[record.class_id]
        except KeyError:
            raise not_found(
                f"Unknown class id {record.class_id} of record {index}"
            ) from None

    def schema_for(
        self, index: LogicalIndex | int, type_name: Optional[str] = None
    ) -> FieldSchema:
        index = LogicalIndex.coerce(index)
        if type_name is None:
            type_name = self.type_name_of(index)
        return self.schemas.get_schema(self.container(index.side), type_name)

    def get_decoded_field(
        self, index: LogicalIndex | int, type_name: Optional[str] = None
    ) -> Any:
        index = LogicalIndex.coerce(index)
        cached = self._cache.get(index)
        if cached is not None:
            return cached
        tree = decode(self.schema_for(index, type_name), self.read_payload(index))
        self._cache[index] = tree
        return tree

    def cached(self, index: LogicalIndex | int) -> Any:
        return self._cache.get(LogicalIndex.coerce(index))

    def invalidate(self, index: LogicalIndex | int) -> None:
        self._cache.pop(LogicalIndex.coerce(index), None)

    # Script types ------------------------------------------------------------------
    def resolve_record_type(
        self, side: Side, type_name: str, hint: int = 0
    ) -> int:
        """Index of ``type_name`` in the script-type table of ``side``.

        The table is probed at ``hint`` first, then scanned onwards and
        wrapped around; script type names are unique per container so the
        result is the same as a linear scan. Entries pointing at containers
        outside the registry never match.
        """
        script_types = self.container(side).script_types
        count = len(script_types)
        if not 0 <= hint < count:
            hint = 0
        for offset in range(count):
            i = (hint + offset) % count
            if not self.is_tracked(side, script_types[i]):
                continue
            if self.script_name(side, i) == type_name:
                return i
        raise not_found(
            f"Script type {type_name} not found in {self.container(side).name}"
        )

    def enumerate_records_of_type(
        self, side: Side, type_name: str, hint: int = 0
    ) -> Iterator[Tuple[LogicalIndex, Any]]:
        container = self.container(side)
        try:
            script_index = self.resolve_record_type(side, type_name, hint)
        except NotFoundError:
            return
        expected = container.script_types[script_index]
        for position in range(container.record_count):
            if container.records[position].script_index != script_index:
                continue
            index = LogicalIndex(side, position)
            tree = self.get_decoded_field(index, type_name)
            script = tree.get("m_Script") if isinstance(tree, dict) else None
            if script is None or AssetRef.from_node(script) != expected:
                raise corrupt_container(
                    "The script index of a record doesn't match its m_Script "
                    "reference; the container may be broken",
                    {"container": container.name, "record": int(index)},
                )
            yield index, tree

    # Mutation ------------------------------------------------------------------------
    def append_record(
        self, class_id: int, payload: bytes, script_index: int = NO_SCRIPT
    ) -> LogicalIndex:
        """Append a record to the leaf container."""
        position = self.leaf.append_record_descriptor(
            class_id, payload, script_index
        )
        self.mark_dirty(Side.LEAF)
        index = LogicalIndex(Side.LEAF, position)
        get_logger().debug(
            "Appended %s record %s (object %d, %d bytes)",
            CLASS_NAMES.get(class_id, class_id),
            index,
            self.leaf.records[position].object_id,
            len(payload),
        )
        return index

    def set_payload(
        self, index: LogicalIndex | int, payload: bytes, tree: Any = None
    ) -> None:
        """Install ``payload`` as the pending replacement of a record.

        ``tree`` (the decoded form of ``payload``) refreshes the cache; without
        it the cache entry is dropped.
        """
        index = LogicalIndex.coerce(index)
        self.get_record(index).replacement = bytes(payload)
        self.mark_dirty(index.side)
        if tree is None:
            self._cache.pop(index, None)
        else:
            self._cache[index] = tree

    # Addressing ----------------------------------------------------------------------
    def reference_for(
        self, from_side: Side, to_index: LogicalIndex | int
    ) -> AssetRef:
        to_index = LogicalIndex.coerce(to_index)
        object_id = self.get_record(to_index).object_id
        if to_index.side is from_side:
            return AssetRef(0, object_id)
        if from_side is Side.DEPENDENT:
            return AssetRef(self.dependency_slot, object_id)
        raise invalid_cross_reference(
            f"{self.leaf.name} cannot reference {self.dependent.name}",
            {"target": int(to_index)},
        )

    def is_tracked(self, from_side: Side, ref: AssetRef) -> bool:
        """Whether ``ref`` points into one of the two registered containers."""
        return ref.file_id == 0 or (
            from_side is Side.DEPENDENT and ref.file_id == self.dependency_slot
        )

    def resolve_reference(
        self, from_side: Side, ref: AssetRef
    ) -> Optional[LogicalIndex]:
        if ref.is_null:
            return None
        if ref.file_id == 0:
            return self.index_of(from_side, ref.path_id)
        if from_side is Side.DEPENDENT and ref.file_id == self.dependency_slot:
            return self.index_of(Side.LEAF, ref.path_id)
        raise invalid_cross_reference(
            f"Reference {ref} from {self.container(from_side).name} points "
            "outside the tracked containers"
        )

    # Persistence ------------------------------------------------------------------------
    def save(self) -> list[Path]:
        """Flush dirty containers (leaf first) with write-then-rename.

        Each saved container is closed afterwards. Returns the saved paths.
        """
        logger = get_logger()
        rep = get_reporter()
        saved: list[Path] = []
        with section("Save containers"):
            for side in (Side.LEAF, Side.DEPENDENT):
                if not self._dirty[side]:
                    continue
                container = self.container(side)
                if container.path is None:
                    raise RuntimeError(f"{container.name} has no backing file")
                target = container.path
                tmp = target.with_name("~" + target.name)
                try:
                    with tmp.open("w+b") as f:
                        size = container.write(f)
                except BaseException:
                    tmp.unlink(missing_ok=True)
                    raise
                container.close()
                os.replace(tmp, target)
                self._dirty[side] = False
                saved.append(target)
                logger.info("Saved %s (%d bytes)", target.name, size)
            rep.status(
                "Save summary: "
                + f"containers={len(saved)} "
                + " ".join(f"file={p.name}" for p in saved)
            )
        return saved

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for container in self._containers.values():
            container.close()

    def __enter__(self) -> "ContainerRegistry":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

"""Locate the container files and type-tree document in a game data folder."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..assets.constants import DEPENDENT_CONTAINER_NAME, LEAF_CONTAINER_NAME

__all__ = ["MetadataPaths", "locate_metadata", "SCHEMA_FILE_NAMES"]

SCHEMA_FILE_NAMES = ("typetree.json", "typetree.yaml", "typetree.yml")


@dataclass(frozen=True, slots=True)
class MetadataPaths:
    data_dir: Path
    leaf: Path
    dependent: Path
    schema: Path


def locate_metadata(
    game_data_path: str | Path, schema_path: str | Path | None = None
) -> MetadataPaths:
    data_dir = Path(game_data_path).resolve()
    if not data_dir.is_dir():
        raise FileNotFoundError(f"Game data folder not found: {data_dir}")
    leaf = data_dir / LEAF_CONTAINER_NAME
    dependent = data_dir / DEPENDENT_CONTAINER_NAME
    for p in (leaf, dependent):
        if not p.is_file():
            raise FileNotFoundError(
                f"Unable to find {p.name} in the game data folder: {data_dir}"
            )
    if schema_path is not None:
        schema = Path(schema_path)
        if not schema.is_file():
            raise FileNotFoundError(f"Type tree document not found: {schema}")
    else:
        candidates = [data_dir / n for n in SCHEMA_FILE_NAMES]
        found = [c for c in candidates if c.is_file()]
        if not found:
            raise FileNotFoundError(
                "Unable to find the type tree document in the game data "
                f"folder: {data_dir}"
            )
        schema = found[0]
    return MetadataPaths(
        data_dir=data_dir, leaf=leaf, dependent=dependent, schema=schema
    )

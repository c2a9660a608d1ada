"""High-level API for FontPatch.

``apply_patch`` runs a patch package against a game data folder; the other
helpers back the diagnostic CLI commands.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Set, Tuple

from .assets.inspector import (
    inspect_container as _inspect_container_impl,
    validate_container as _validate_container_impl,
)
from .assets.registry import LogicalIndex, Side
from .fonts.manager import FontManager
from .logging import get_logger, section
from .manifest import (
    MANIFEST_FILE_NAMES,
    ManifestError,
    PatchManifest,
    load_manifest,
)
from .package import PatchPackage
from .reporting.base import get_reporter, task

__all__ = [
    "PatchOptions",
    "PatchResult",
    "apply_patch",
    "read_manifest",
    "list_fonts",
    "fallback_graph",
    "inspect_container",
    "validate_container",
]


@dataclass(slots=True)
class PatchOptions:
    game_data: Path
    package: Path
    # Type-tree document; located in the game data folder when omitted
    schema_path: Path | None = None
    # Run every operation but leave the containers on disk untouched
    dry_run: bool = False


@dataclass(slots=True)
class PatchResult:
    source_fonts: List[int] = field(default_factory=list)
    atlases: List[int] = field(default_factory=list)
    materials: List[int] = field(default_factory=list)
    replaced: Dict[str, List[int]] = field(default_factory=dict)
    missing_fonts: List[str] = field(default_factory=list)
    removed_characters: int = 0
    saved: List[Path] = field(default_factory=list)


def read_manifest(package: PatchPackage) -> PatchManifest:
    for name in MANIFEST_FILE_NAMES:
        if name in package:
            return load_manifest(package.read(name), Path(name).suffix)
    raise ManifestError(f"No manifest found in {package.path.name}")


def _replace_fonts(
    manager: FontManager,
    package: PatchPackage,
    manifest: PatchManifest,
    sources: List[LogicalIndex],
    materials: List[Tuple[LogicalIndex, LogicalIndex]],
    result: PatchResult,
) -> Set[LogicalIndex]:
    logger = get_logger()
    by_name = manager.fonts_by_name()
    # Per container: manifest font index -> first record patched with it.
    patched: Dict[Side, Dict[int, LogicalIndex]] = {s: {} for s in Side}
    replaced: Set[LogicalIndex] = set()
    with task(
        "replace", "Replace fonts", total=len(manifest.font_replacements)
    ) as rep:
        for name, font_index in manifest.font_replacements.items():
            targets = by_name.get(name)
            if not targets:
                logger.warning("Font not found: %s", name)
                result.missing_fonts.append(name)
                rep.advance("replace", current_item=name)
                continue
            for index in targets:
                done = patched[index.side].get(font_index)
                if done is not None:
                    manager.clone_font(done, index)
                else:
                    entry = manifest.fonts[font_index]
                    material, atlas = materials[entry.material]
                    source = (
                        None
                        if entry.source_font is None
                        else sources[entry.source_font]
                    )
                    try:
                        description = json.loads(
                            package.read(entry.path).decode("utf-8-sig")
                        )
                    except ValueError as e:
                        raise ManifestError(
                            f"Invalid font description: {e}", entry.path
                        ) from e
                    manager.replace_font(
                        index, description, atlas, material, source
                    )
                    patched[index.side][font_index] = index
                replaced.add(index)
                result.replaced.setdefault(name, []).append(int(index))
                logger.info("Replaced: %s (%s)", name, index)
            rep.advance("replace", current_item=name, fonts=len(replaced))
    rep.status(
        "Replace summary: "
        + f"fonts={len(replaced)} names={len(result.replaced)} "
        + f"missing={len(result.missing_fonts)}"
    )
    return replaced


def _remove_characters(
    manager: FontManager,
    manifest: PatchManifest,
    replaced: Set[LogicalIndex],
    result: PatchResult,
) -> None:
    options = manifest.remove_characters
    if options is None:
        return
    logger = get_logger()
    by_name = manager.fonts_by_name()
    characters: Set[int] = set(options.from_characters)
    for name in options.from_font:
        indices = by_name.get(name)
        if not indices:
            logger.warning("Font not found: %s", name)
            continue
        characters.update(manager.characters(indices[0]))

    excludes: Set[LogicalIndex] = set(replaced) if options.exclude_replaced else set()
    for name in options.exclude_fonts:
        indices = by_name.get(name)
        if not indices:
            logger.warning("Font not found: %s", name)
            continue
        excludes.update(indices)

    targets = [i for i in manager.fonts if i not in excludes]
    logger.info(
        "Removing %d characters in %d fonts", len(characters), len(targets)
    )
    removed = 0
    if characters:
        with task("remove", "Remove characters", fonts=len(targets)):
            removed = manager.remove_characters(targets, characters)
    result.removed_characters = removed
    get_reporter().status(
        "Remove summary: "
        + f"characters={len(characters)} fonts={len(targets)} removed={removed}"
    )


def apply_patch(options: PatchOptions) -> PatchResult:
    logger = get_logger()
    rep = get_reporter()
    result = PatchResult()
    with PatchPackage(options.package) as package:
        manifest = read_manifest(package)
        with section("Read font assets"):
            manager = FontManager.open(options.game_data, options.schema_path)
        with manager:
            rep.status(
                "Load summary: "
                + f"fonts={len(manager.fonts)} "
                + f"records={manager.registry.leaf.record_count + manager.registry.dependent.record_count}"
            )
            with section("Inject assets"):
                with task("inject.fonts", "Inject source fonts"):
                    sources = [
                        manager.add_font_file(package.read(p))
                        for p in manifest.source_font_files
                    ]
                with task("inject.atlases", "Inject atlases"):
                    atlases = [
                        manager.add_atlas(package.read(p)) for p in manifest.atlases
                    ]
                materials: List[Tuple[LogicalIndex, LogicalIndex]] = []
                with task("inject.materials", "Inject materials"):
                    for entry in manifest.materials:
                        atlas = atlases[entry.atlas]
                        material = manager.add_material(package.read(entry.path), atlas)
                        materials.append((material, atlas))
                result.source_fonts = [int(i) for i in sources]
                result.atlases = [int(i) for i in atlases]
                result.materials = [int(m) for m, _ in materials]
                rep.status(
                    "Inject summary: "
                    + f"fonts={len(sources)} atlases={len(atlases)} "
                    + f"materials={len(materials)}"
                )
            replaced: Set[LogicalIndex] = set()
            if manifest.font_replacements:
                with section("Replace fonts"):
                    replaced = _replace_fonts(
                        manager, package, manifest, sources, materials, result
                    )
            if manifest.remove_characters is not None:
                with section("Remove characters"):
                    _remove_characters(manager, manifest, replaced, result)
            if options.dry_run:
                logger.info("Dry run: containers left unchanged")
            else:
                logger.info("Saving (may take minutes)")
                result.saved = manager.save()
    rep.status(
        "Patch summary: "
        + f"replaced={sum(len(v) for v in result.replaced.values())} "
        + f"removed={result.removed_characters} saved={len(result.saved)} "
        + f"dry_run={str(options.dry_run).lower()}"
    )
    return result


def list_fonts(
    game_data: str | Path, schema_path: str | Path | None = None
) -> List[Dict[str, Any]]:
    with FontManager.open(game_data, schema_path) as manager:
        return [
            {
                "index": int(index),
                "container": manager.registry.container(index.side).name,
                "name": tree.get("m_Name", ""),
                "characters": len(
                    tree.get("m_CharacterTable", {}).get("Array", [])
                ),
            }
            for index, tree in manager.fonts.items()
        ]


def fallback_graph(
    game_data: str | Path, schema_path: str | Path | None = None
) -> str:
    with FontManager.open(game_data, schema_path) as manager:
        return manager.dump_fallback_graph()


def inspect_container(path: str | Path) -> Dict[str, Any]:
    return _inspect_container_impl(path)


def validate_container(path: str | Path) -> List[str]:
    return _validate_container_impl(_inspect_container_impl(path))

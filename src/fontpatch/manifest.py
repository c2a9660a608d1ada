"""Patch manifest loading (``manifest.json`` / ``manifest.yaml``).

Shape::

    {
      "sourceFontFiles": [{"path": "fonts/NotoSans.font"}],
      "atlases": [{"path": "atlas/NotoSans.tex"}],
      "materials": [{"path": "mat/NotoSans.mat", "atlas": 0}],
      "fonts": [{"path": "NotoSans.json", "material": 0, "sourceFont": 0}],
      "fontReplacements": {"LiberationSans SDF": 0},
      "removeCharacters": {
        "fromCharacters": [65, "B"],
        "fromFont": ["Bangers SDF"],
        "excludeReplaced": true,
        "excludeFonts": ["Icons SDF"]
      }
    }

Every index is checked against the list it points into.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import json5
import yaml

__all__ = [
    "ManifestError",
    "MaterialEntry",
    "FontEntry",
    "RemoveCharacters",
    "PatchManifest",
    "MANIFEST_FILE_NAMES",
    "load_manifest",
    "parse_manifest",
]

MANIFEST_FILE_NAMES = ("manifest.json", "manifest.yaml", "manifest.yml")


class ManifestError(ValueError):
    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(f"{path}: {message}" if path else message)
        self.message = message
        self.path = path


@dataclass(slots=True)
class MaterialEntry:
    path: str
    atlas: int


@dataclass(slots=True)
class FontEntry:
    path: str
    material: int
    source_font: Optional[int] = None


@dataclass(slots=True)
class RemoveCharacters:
    from_characters: List[int] = field(default_factory=list)
    from_font: List[str] = field(default_factory=list)
    exclude_replaced: bool = False
    exclude_fonts: List[str] = field(default_factory=list)


@dataclass(slots=True)
class PatchManifest:
    source_font_files: List[str] = field(default_factory=list)
    atlases: List[str] = field(default_factory=list)
    materials: List[MaterialEntry] = field(default_factory=list)
    fonts: List[FontEntry] = field(default_factory=list)
    font_replacements: Dict[str, int] = field(default_factory=dict)
    remove_characters: Optional[RemoveCharacters] = None


def _list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ManifestError("must be a list", key)
    return value


def _object(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ManifestError("must be an object", path)
    return value


def _path_of(entry: Any, path: str) -> str:
    p = _object(entry, path).get("path")
    if not isinstance(p, str) or not p:
        raise ManifestError("'path' must be a non-empty string", path)
    return p


def _index(value: Any, size: int, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ManifestError("must be an integer index", path)
    if not 0 <= value < size:
        raise ManifestError(f"index {value} out of range ({size} entries)", path)
    return value


def _names(value: Any, path: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ManifestError("must be a list of font names", path)
    return list(value)


def _character(value: Any, path: str) -> int:
    if isinstance(value, str) and len(value) == 1:
        return ord(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ManifestError("must be a code point or a single character", path)
    return value


def parse_manifest(data: Any) -> PatchManifest:
    root = _object(data, "manifest")
    m = PatchManifest()
    m.source_font_files = [
        _path_of(e, f"sourceFontFiles[{i}]")
        for i, e in enumerate(_list(root, "sourceFontFiles"))
    ]
    m.atlases = [
        _path_of(e, f"atlases[{i}]") for i, e in enumerate(_list(root, "atlases"))
    ]
    for i, e in enumerate(_list(root, "materials")):
        where = f"materials[{i}]"
        m.materials.append(
            MaterialEntry(
                path=_path_of(e, where),
                atlas=_index(e.get("atlas"), len(m.atlases), f"{where}.atlas"),
            )
        )
    for i, e in enumerate(_list(root, "fonts")):
        where = f"fonts[{i}]"
        source = e.get("sourceFont") if isinstance(e, dict) else None
        m.fonts.append(
            FontEntry(
                path=_path_of(e, where),
                material=_index(
                    e.get("material"), len(m.materials), f"{where}.material"
                ),
                source_font=(
                    None
                    if source is None
                    else _index(
                        source, len(m.source_font_files), f"{where}.sourceFont"
                    )
                ),
            )
        )
    replacements = root.get("fontReplacements")
    if replacements is not None:
        for name, fi in _object(replacements, "fontReplacements").items():
            m.font_replacements[str(name)] = _index(
                fi, len(m.fonts), f"fontReplacements.{name}"
            )
    rc = root.get("removeCharacters")
    if rc is not None:
        rc = _object(rc, "removeCharacters")
        chars = rc.get("fromCharacters") or []
        if not isinstance(chars, list):
            raise ManifestError("must be a list", "removeCharacters.fromCharacters")
        exclude_replaced = rc.get("excludeReplaced", False)
        if not isinstance(exclude_replaced, bool):
            raise ManifestError(
                "must be a boolean", "removeCharacters.excludeReplaced"
            )
        m.remove_characters = RemoveCharacters(
            from_characters=[
                _character(c, f"removeCharacters.fromCharacters[{i}]")
                for i, c in enumerate(chars)
            ],
            from_font=_names(rc.get("fromFont"), "removeCharacters.fromFont"),
            exclude_replaced=exclude_replaced,
            exclude_fonts=_names(
                rc.get("excludeFonts"), "removeCharacters.excludeFonts"
            ),
        )
    return m


def load_manifest(data: bytes, suffix: str = ".json") -> PatchManifest:
    """Parse manifest bytes; ``suffix`` selects YAML for ``.yaml``/``.yml``.

    JSON manifests may carry comments and trailing commas.
    """
    try:
        text = data.decode("utf-8-sig")
        if suffix.lower() in {".yaml", ".yml"}:
            raw: Any = yaml.safe_load(text)
        else:
            raw = json5.loads(text)
    except (ValueError, yaml.YAMLError) as e:
        raise ManifestError(f"Cannot parse manifest: {e}") from e
    return parse_manifest(raw)

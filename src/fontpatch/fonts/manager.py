"""Font asset patch operations.

:class:`FontManager` loads every ``TMP_FontAsset`` record of both containers
into :attr:`FontManager.fonts` and offers the transformations used by a patch
package: injecting font files, atlas textures and materials into the leaf
container, replacing font assets from structured descriptions, and trimming
character tables.

Each operation validates its inputs before touching a record, so a failing
call leaves every payload and dirty flag as it was.
"""

from __future__ import annotations

import copy
import struct
from pathlib import Path
from typing import Any, Collection, Dict, Iterable, List, Optional

from ..assets.constants import (
    ASSET_REF_SIZE,
    ATLAS_POPULATION_DYNAMIC,
    CLASS_FONT,
    CLASS_MATERIAL,
    CLASS_TEXTURE_2D,
    DEPENDENT_FONT_SCRIPT_HINT,
    FONT_ASSET_SCRIPT,
    LEAF_FONT_SCRIPT_HINT,
    SETTINGS_SCRIPT,
)
from ..assets.encoder import encode
from ..assets.decoder import decode
from ..assets.errors import (
    cross_container_not_allowed,
    not_found,
    type_mismatch,
    unsupported_payload_shape,
)
from ..assets.layout import align_up
from ..assets.references import AssetRef
from ..assets.registry import ContainerRegistry, LogicalIndex, Side
from ..logging import get_logger
from ..schema.loader import SchemaSource
from ..schema.locator import locate_metadata

__all__ = ["FontManager"]

Index = LogicalIndex | int


class FontManager:
    def __init__(self, registry: ContainerRegistry) -> None:
        self.registry = registry
        self.fonts: Dict[LogicalIndex, Dict[str, Any]] = {}
        try:
            self._load_fonts(Side.LEAF, LEAF_FONT_SCRIPT_HINT)
            self._load_fonts(Side.DEPENDENT, DEPENDENT_FONT_SCRIPT_HINT)
        except BaseException:
            registry.close()
            raise
        get_logger().info(
            "Loaded %d font assets (%d in %s, %d in %s)",
            len(self.fonts),
            sum(1 for i in self.fonts if i.side is Side.LEAF),
            registry.leaf.name,
            sum(1 for i in self.fonts if i.side is Side.DEPENDENT),
            registry.dependent.name,
        )

    @classmethod
    def open(
        cls, game_data_path: str | Path, schema_path: str | Path | None = None
    ) -> "FontManager":
        paths = locate_metadata(game_data_path, schema_path)
        schemas = SchemaSource.load(paths.schema)
        return cls(ContainerRegistry.open(paths.leaf, paths.dependent, schemas))

    def _load_fonts(self, side: Side, hint: int) -> None:
        for index, tree in self.registry.enumerate_records_of_type(
            side, FONT_ASSET_SCRIPT, hint
        ):
            self.fonts[index] = tree

    # Lookups --------------------------------------------------------------------
    def font_name(self, index: Index) -> str:
        return self._font(index).get("m_Name", "")

    def fonts_by_name(self) -> Dict[str, List[LogicalIndex]]:
        out: Dict[str, List[LogicalIndex]] = {}
        for index, tree in self.fonts.items():
            out.setdefault(tree.get("m_Name", ""), []).append(index)
        return out

    def _font(self, index: Index) -> Dict[str, Any]:
        index = LogicalIndex.coerce(index)
        try:
            return self.fonts[index]
        except KeyError:
            raise not_found(f"No font asset at index {index}") from None

    def _any_font(self, side: Side) -> tuple[LogicalIndex, Dict[str, Any]]:
        for index, tree in self.fonts.items():
            if index.side is side:
                return index, tree
        raise not_found(
            f"No font asset registered in {self.registry.container(side).name}"
        )

    # Injection ------------------------------------------------------------------
    def add_font_file(self, data: bytes) -> LogicalIndex:
        """Inject a ``Font`` record; its material and texture references start null."""
        buf = bytearray(data)
        if len(buf) < 4:
            raise unsupported_payload_shape("Font payload is too short")
        (name_len,) = struct.unpack_from("<i", buf, 0)
        # m_Name, m_LineSpacing
        offset = align_up(4 + max(name_len, 0) + 4)
        if name_len < 0 or offset + 2 * ASSET_REF_SIZE + 4 > len(buf):
            raise unsupported_payload_shape(
                "Font payload is too short for its declared name length",
                {"name_length": name_len, "size": len(buf)},
            )
        buf[offset : offset + ASSET_REF_SIZE] = bytes(ASSET_REF_SIZE)  # m_DefaultMaterial
        offset += ASSET_REF_SIZE + 4  # m_FontSize
        buf[offset : offset + ASSET_REF_SIZE] = bytes(ASSET_REF_SIZE)  # m_Texture
        return self.registry.append_record(CLASS_FONT, bytes(buf))

    def add_atlas(self, data: bytes) -> LogicalIndex:
        """Inject a ``Texture2D`` record whose pixels are stored inline."""
        if len(data) < 12 or any(data[-12:]):
            raise unsupported_payload_shape(
                "Stream data isn't supported, please move the pixel data "
                "into the Texture2D asset first"
            )
        return self.registry.append_record(CLASS_TEXTURE_2D, bytes(data))

    def add_material(self, data: bytes, atlas: Index) -> LogicalIndex:
        """Inject a ``Material`` using the shader of the base fonts and ``atlas``."""
        atlas = LogicalIndex.coerce(atlas)
        if atlas.side is not Side.LEAF:
            raise cross_container_not_allowed(
                f"Cannot reference assets outside {self.registry.leaf.name}",
                {"atlas": int(atlas)},
            )
        self.registry.get_record(atlas)

        schema = self.registry.schemas.get_schema(self.registry.leaf, "Material")
        material = decode(schema, data)

        _, base_font = self._any_font(Side.LEAF)
        base_material = self.registry.resolve_reference(
            Side.LEAF, AssetRef.from_node(base_font["material"])
        )
        if base_material is None:
            raise not_found("The base font asset has no material")
        shader = self.registry.get_decoded_field(base_material, "Material")["m_Shader"]
        material["m_Shader"] = copy.deepcopy(shader)

        tex_envs = material["m_SavedProperties"]["m_TexEnvs"]["Array"]
        main_tex = next(
            (env for env in tex_envs if env.get("first") == "_MainTex"), None
        )
        if main_tex is None:
            raise not_found("Material has no _MainTex texture environment")
        self.registry.reference_for(Side.LEAF, atlas).write_to(
            main_tex["second"]["m_Texture"]
        )

        payload = encode(schema, material)
        index = self.registry.append_record(CLASS_MATERIAL, payload)
        self.registry.set_payload(index, payload, material)
        return index

    # Replacement ----------------------------------------------------------------
    def replace_font(
        self,
        index: Index,
        description: Dict[str, Any],
        atlas: Index,
        material: Index,
        source_font: Optional[Index] = None,
    ) -> None:
        """Replace a font asset with ``description`` wired to the given records."""
        index = LogicalIndex.coerce(index)
        atlas = LogicalIndex.coerce(atlas)
        material = LogicalIndex.coerce(material)
        source = None if source_font is None else LogicalIndex.coerce(source_font)
        self._font(index)
        side = index.side
        dynamic = description.get("m_AtlasPopulationMode") == ATLAS_POPULATION_DYNAMIC

        if side is Side.LEAF:
            outside = [
                int(i)
                for i in (atlas, material, source if dynamic else None)
                if i is not None and i.side is not Side.LEAF
            ]
            if outside:
                raise cross_container_not_allowed(
                    f"A font asset in {self.registry.leaf.name} cannot "
                    f"reference assets outside {self.registry.leaf.name}",
                    {"font": int(index), "references": outside},
                )

        data = copy.deepcopy(description)
        if dynamic:
            if source is None:
                raise not_found(
                    "Dynamic atlas population requires a source font file",
                    {"font": int(index)},
                )
            if self.registry.get_record(source).class_id != CLASS_FONT:
                raise type_mismatch(
                    f"Source font {source} is not a Font record",
                    {"class_id": self.registry.get_record(source).class_id},
                )
            source_ref = self.registry.reference_for(side, source)
        else:
            source_ref = AssetRef.NULL
        data["m_SourceFontFile"] = source_ref.to_node()

        _, known = self._any_font(side)
        data["m_Script"] = AssetRef.from_node(known["m_Script"]).to_node()
        data["material"] = self.registry.reference_for(side, material).to_node()
        data["m_AtlasTextures"] = {
            "Array": [self.registry.reference_for(side, atlas).to_node()]
        }

        schema = self.registry.schema_for(index, FONT_ASSET_SCRIPT)
        payload = encode(schema, data)
        tree = decode(schema, payload)
        self.registry.set_payload(index, payload, tree)
        self.fonts[index] = tree
        get_logger().debug(
            "Replaced font %s (%s, %d bytes)", index, tree.get("m_Name"), len(payload)
        )

    def clone_font(self, source: Index, target: Index) -> None:
        """Copy the (already patched) font ``source`` onto ``target``."""
        source = LogicalIndex.coerce(source)
        target = LogicalIndex.coerce(target)
        tree = self._font(source)
        self._font(target)
        if source.side is not target.side:
            raise cross_container_not_allowed(
                "Font assets can only be cloned within one container",
                {"source": int(source), "target": int(target)},
            )
        payload = self.registry.read_payload(source)
        clone = copy.deepcopy(tree)
        self.registry.set_payload(target, payload, clone)
        self.fonts[target] = clone

    # Characters -----------------------------------------------------------------
    def characters(self, index: Index) -> List[int]:
        table = self._font(index)["m_CharacterTable"]["Array"]
        return [c["m_Unicode"] for c in table]

    def remove_characters(
        self, indices: Iterable[Index], characters: Collection[int]
    ) -> int:
        """Drop ``characters`` from the character tables of ``indices``.

        Fonts that lose nothing are left untouched. Returns the number of
        character entries removed.
        """
        removed_total = 0
        for raw in indices:
            index = LogicalIndex.coerce(raw)
            font = self._font(index)
            table = font["m_CharacterTable"]["Array"]
            kept = [c for c in table if c["m_Unicode"] not in characters]
            removed = len(table) - len(kept)
            if not removed:
                continue
            updated = dict(font)
            updated["m_CharacterTable"] = {**font["m_CharacterTable"], "Array": kept}
            payload = encode(
                self.registry.schema_for(index, FONT_ASSET_SCRIPT), updated
            )
            self.registry.set_payload(index, payload, updated)
            self.fonts[index] = updated
            removed_total += removed
        return removed_total

    # Diagnostics ----------------------------------------------------------------
    def _reference_side(self, from_side: Side, ref: AssetRef) -> Side:
        if ref.file_id == 0:
            return from_side
        if from_side is Side.DEPENDENT and ref.file_id == self.registry.dependency_slot:
            return Side.LEAF
        raise AssertionError(
            f"Reference {ref} from {self.registry.container(from_side).name} "
            "uses an unknown dependency slot"
        )

    def _lookup_font(self, from_side: Side, ref: AssetRef) -> Optional[LogicalIndex]:
        side = self._reference_side(from_side, ref)
        for index in self.fonts:
            if (
                index.side is side
                and self.registry.get_record(index).object_id == ref.path_id
            ):
                return index
        return None

    def _describe(self, from_side: Side, node: Dict[str, Any]) -> Optional[str]:
        ref = AssetRef.from_node(node)
        if ref.is_null:
            return None
        index = self._lookup_font(from_side, ref)
        if index is None:
            return f"<missing {ref}>"
        return f"{self.font_name(index)} ({index})"

    def dump_fallback_graph(self) -> str:
        lines: List[str] = ["Global fallbacks:"]
        for side in (Side.LEAF, Side.DEPENDENT):
            for _, settings in self.registry.enumerate_records_of_type(
                side, SETTINGS_SCRIPT
            ):
                for node in settings["m_fallbackFontAssets"]["Array"]:
                    text = self._describe(side, node)
                    if text is not None:
                        lines.append(f"  {text}")
        lines.append("Font fallbacks:")
        for index, tree in self.fonts.items():
            table = tree.get("m_FallbackFontAssetTable", {}).get("Array", [])
            names = [
                t for t in (self._describe(index.side, n) for n in table) if t
            ]
            lines.append(
                f"  {tree.get('m_Name', '')} ({index}): "
                + (", ".join(names) if names else "-")
            )
        return "\n".join(lines) + "\n"

    # Lifecycle ------------------------------------------------------------------
    def save(self) -> list[Path]:
        return self.registry.save()

    def close(self) -> None:
        self.registry.close()

    def __enter__(self) -> "FontManager":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

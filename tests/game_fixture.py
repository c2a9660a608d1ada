"""Builds a small game data folder (two containers + type tree) for tests.

Leaf container ``resources.assets`` (logical index = ~position):

    -1  MonoScript TMP_FontAsset        (object 1)
    -2  MonoScript TMP_Settings         (object 2)
    -3  Material "Base Material"        (object 3, shader 0:99)
    -4  Texture2D "Base Atlas"          (object 4)
    -5  TMP_FontAsset LiberationSans    (object 5, chars A B C)
    -6  TMP_FontAsset Fallback SDF      (object 6, chars B U+4E00)
    -7  TMP_Settings                    (object 7, fallbacks -> object 6)

Dependent container ``sharedassets1.assets`` (slot 2 -> resources.assets):

     0  Material "Shared Material"      (object 1)
     1  Texture2D "Shared Atlas"        (object 2)
     2  TMP_FontAsset LiberationSans    (object 3, chars A B)
     3  TMP_FontAsset Bangers SDF       (object 4, chars C D)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from fontpatch.assets.constants import (
    CLASS_MATERIAL,
    CLASS_MONO_BEHAVIOUR,
    CLASS_MONO_SCRIPT,
    CLASS_TEXTURE_2D,
    NO_SCRIPT,
)
from fontpatch.assets.container import Container, Record
from fontpatch.assets.encoder import encode
from fontpatch.assets.references import AssetRef
from fontpatch.schema.loader import SchemaSource

RUNTIME = "2019.4.40f1"


def _string(name: str) -> dict:
    return {"name": name, "type": "string"}


def _pptr(name: str) -> dict:
    return {
        "name": name,
        "type": "PPtr<Object>",
        "children": [
            {"name": "m_FileID", "type": "int"},
            {"name": "m_PathID", "type": "SInt64"},
        ],
    }


def _vector(name: str, element: dict) -> dict:
    return {
        "name": name,
        "type": "vector",
        "flags": ["aligned"],
        "children": [
            {
                "name": "Array",
                "type": "Array",
                "flags": ["array"],
                "children": [{"name": "size", "type": "int"}, element],
            }
        ],
    }


def _behaviour_header() -> list:
    return [
        _pptr("m_GameObject"),
        {"name": "m_Enabled", "type": "UInt8", "flags": ["aligned"]},
        _pptr("m_Script"),
        _string("m_Name"),
    ]


def type_tree() -> dict:
    tex_env = {
        "name": "second",
        "type": "UnityTexEnv",
        "children": [
            _pptr("m_Texture"),
            {
                "name": "m_Scale",
                "type": "Vector2f",
                "children": [
                    {"name": "x", "type": "float"},
                    {"name": "y", "type": "float"},
                ],
            },
        ],
    }
    character = {
        "name": "data",
        "type": "TMP_Character",
        "children": [
            {"name": "m_ElementType", "type": "int"},
            {"name": "m_Unicode", "type": "unsigned int"},
            {"name": "m_GlyphIndex", "type": "unsigned int"},
            {"name": "m_Scale", "type": "float"},
        ],
    }
    types = {
        "MonoScript": {
            "name": "Base",
            "type": "MonoScript",
            "children": [_string("m_Name"), _string("m_ClassName")],
        },
        "Font": {
            "name": "Base",
            "type": "Font",
            "children": [
                _string("m_Name"),
                {"name": "m_LineSpacing", "type": "float"},
                _pptr("m_DefaultMaterial"),
                {"name": "m_FontSize", "type": "float"},
                _pptr("m_Texture"),
                _vector("m_FontData", {"name": "data", "type": "char"}),
            ],
        },
        "Texture2D": {
            "name": "Base",
            "type": "Texture2D",
            "children": [
                _string("m_Name"),
                {"name": "m_Width", "type": "int"},
                {"name": "m_Height", "type": "int"},
                {"name": "image data", "type": "TypelessData", "flags": ["aligned"]},
                {
                    "name": "m_StreamData",
                    "type": "StreamingInfo",
                    "children": [
                        {"name": "offset", "type": "unsigned int"},
                        {"name": "size", "type": "unsigned int"},
                        _string("path"),
                    ],
                },
            ],
        },
        "Material": {
            "name": "Base",
            "type": "Material",
            "children": [
                _string("m_Name"),
                _pptr("m_Shader"),
                {
                    "name": "m_SavedProperties",
                    "type": "UnityPropertySheet",
                    "children": [
                        _vector(
                            "m_TexEnvs",
                            {
                                "name": "data",
                                "type": "pair",
                                "children": [_string("first"), tex_env],
                            },
                        ),
                        _vector(
                            "m_Floats",
                            {
                                "name": "data",
                                "type": "pair",
                                "children": [
                                    _string("first"),
                                    {"name": "second", "type": "float"},
                                ],
                            },
                        ),
                    ],
                },
            ],
        },
        "TMP_FontAsset": {
            "name": "Base",
            "type": "MonoBehaviour",
            "children": _behaviour_header()
            + [
                _pptr("material"),
                _pptr("m_SourceFontFile"),
                {"name": "m_AtlasPopulationMode", "type": "int"},
                _vector("m_AtlasTextures", _pptr("data")),
                _vector("m_CharacterTable", character),
                _vector("m_FallbackFontAssetTable", _pptr("data")),
            ],
        },
        "TMP_Settings": {
            "name": "Base",
            "type": "MonoBehaviour",
            "children": _behaviour_header()
            + [_vector("m_fallbackFontAssets", _pptr("data"))],
        },
    }
    return {"versions": {RUNTIME: types}}


def schemas() -> SchemaSource:
    return SchemaSource.from_dict(type_tree())


def ref(file_id: int, path_id: int) -> dict:
    return AssetRef(file_id, path_id).to_node()


def characters(codes: Iterable[int]) -> dict:
    return {
        "Array": [
            {
                "m_ElementType": 1,
                "m_Unicode": c,
                "m_GlyphIndex": i + 1,
                "m_Scale": 1.0,
            }
            for i, c in enumerate(codes)
        ]
    }


def font_tree(
    name: str,
    script: dict,
    material: dict,
    atlas: dict,
    codes: Iterable[int],
    fallbacks: Iterable[dict] = (),
    mode: int = 0,
) -> dict:
    return {
        "m_GameObject": ref(0, 0),
        "m_Enabled": 1,
        "m_Script": script,
        "m_Name": name,
        "material": material,
        "m_SourceFontFile": ref(0, 0),
        "m_AtlasPopulationMode": mode,
        "m_AtlasTextures": {"Array": [atlas]},
        "m_CharacterTable": characters(codes),
        "m_FallbackFontAssetTable": {"Array": list(fallbacks)},
    }


def font_description(name: str, codes: Iterable[int], mode: int = 0) -> dict:
    """A replacement font as shipped in a patch package."""
    return font_tree(name, ref(0, 0), ref(0, 0), ref(0, 0), codes, mode=mode)


def material_tree(name: str, shader: dict, with_main_tex: bool = True) -> dict:
    envs = [
        {
            "first": "_FaceTex",
            "second": {"m_Texture": ref(0, 0), "m_Scale": {"x": 1.0, "y": 1.0}},
        }
    ]
    if with_main_tex:
        envs.append(
            {
                "first": "_MainTex",
                "second": {"m_Texture": ref(0, 0), "m_Scale": {"x": 1.0, "y": 1.0}},
            }
        )
    return {
        "m_Name": name,
        "m_Shader": shader,
        "m_SavedProperties": {
            "m_TexEnvs": {"Array": envs},
            "m_Floats": {"Array": [{"first": "_GradientScale", "second": 5.0}]},
        },
    }


def texture_tree(name: str, streamed: bool = False) -> dict:
    return {
        "m_Name": name,
        "m_Width": 2,
        "m_Height": 2,
        "image data": [255, 0, 255, 0],
        "m_StreamData": (
            {"offset": 16, "size": 4, "path": "archive:/atlas.resS"}
            if streamed
            else {"offset": 0, "size": 0, "path": ""}
        ),
    }


def font_file_tree(name: str) -> dict:
    return {
        "m_Name": name,
        "m_LineSpacing": 1.5,
        "m_DefaultMaterial": ref(0, 3),
        "m_FontSize": 16.0,
        "m_Texture": ref(0, 4),
        "m_FontData": {"Array": [0, 1, 0, 0, 7]},
    }


def payload(type_name: str, tree: Any) -> bytes:
    return encode(schemas().lookup(RUNTIME, type_name), tree)


def font_file_payload(name: str = "NotoSans") -> bytes:
    return payload("Font", font_file_tree(name))


def atlas_payload(name: str = "NotoSans Atlas", streamed: bool = False) -> bytes:
    return payload("Texture2D", texture_tree(name, streamed))


def material_payload(name: str = "NotoSans Material", with_main_tex: bool = True) -> bytes:
    return payload("Material", material_tree(name, ref(0, 0), with_main_tex))


def write_container(
    path: Path,
    records: list[tuple[int, int, bytes]],
    script_types: list[AssetRef],
    dependencies: list[str],
) -> Path:
    container = Container(
        path.name,
        RUNTIME,
        [
            Record(object_id=i + 1, class_id=c, script_index=s, replacement=p)
            for i, (c, s, p) in enumerate(records)
        ],
        script_types,
        dependencies,
    )
    with path.open("w+b") as f:
        container.write(f)
    return path


def build_game(root: Path, foreign_script: bool = False) -> Path:
    """Write the two containers and ``typetree.json``; returns the data dir.

    ``foreign_script`` puts an entry from an untracked dependency (slot 1)
    in front of the dependent container's script-type table.
    """
    data = root / "Game_Data"
    data.mkdir(parents=True)
    (data / "typetree.json").write_text(json.dumps(type_tree()), encoding="utf-8")

    leaf_script = ref(0, 1)
    write_container(
        data / "resources.assets",
        [
            (CLASS_MONO_SCRIPT, NO_SCRIPT, payload("MonoScript", {"m_Name": "TMP_FontAsset", "m_ClassName": "TMP_FontAsset"})),
            (CLASS_MONO_SCRIPT, NO_SCRIPT, payload("MonoScript", {"m_Name": "TMP_Settings", "m_ClassName": "TMP_Settings"})),
            (CLASS_MATERIAL, NO_SCRIPT, payload("Material", material_tree("Base Material", ref(0, 99)))),
            (CLASS_TEXTURE_2D, NO_SCRIPT, payload("Texture2D", texture_tree("Base Atlas"))),
            (
                CLASS_MONO_BEHAVIOUR,
                0,
                payload(
                    "TMP_FontAsset",
                    font_tree("LiberationSans SDF", leaf_script, ref(0, 3), ref(0, 4), [65, 66, 67], [ref(0, 6)]),
                ),
            ),
            (
                CLASS_MONO_BEHAVIOUR,
                0,
                payload(
                    "TMP_FontAsset",
                    font_tree("Fallback SDF", leaf_script, ref(0, 3), ref(0, 4), [66, 0x4E00]),
                ),
            ),
            (
                CLASS_MONO_BEHAVIOUR,
                1,
                payload(
                    "TMP_Settings",
                    {
                        "m_GameObject": ref(0, 0),
                        "m_Enabled": 1,
                        "m_Script": ref(0, 2),
                        "m_Name": "TMP Settings",
                        "m_fallbackFontAssets": {"Array": [ref(0, 6)]},
                    },
                ),
            ),
        ],
        [AssetRef(0, 1), AssetRef(0, 2)],
        [],
    )

    dep_script = ref(2, 1)
    dep_types = [AssetRef(1, 7), AssetRef(2, 1)] if foreign_script else [AssetRef(2, 1)]
    font_script = len(dep_types) - 1
    write_container(
        data / "sharedassets1.assets",
        [
            (CLASS_MATERIAL, NO_SCRIPT, payload("Material", material_tree("Shared Material", ref(0, 99)))),
            (CLASS_TEXTURE_2D, NO_SCRIPT, payload("Texture2D", texture_tree("Shared Atlas"))),
            (
                CLASS_MONO_BEHAVIOUR,
                font_script,
                payload(
                    "TMP_FontAsset",
                    font_tree("LiberationSans SDF", dep_script, ref(0, 1), ref(0, 2), [65, 66], [ref(2, 6)]),
                ),
            ),
            (
                CLASS_MONO_BEHAVIOUR,
                font_script,
                payload(
                    "TMP_FontAsset",
                    font_tree("Bangers SDF", dep_script, ref(0, 1), ref(0, 2), [67, 68], [ref(2, 5)]),
                ),
            ),
        ],
        dep_types,
        ["library/unity default resources", "resources.assets"],
    )
    return data

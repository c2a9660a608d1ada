"""Binary layout constants for asset containers and record payloads."""

from __future__ import annotations

# Container file
MAGIC = b"FPASSETS"
FOOTER_MAGIC = b"FPASSEND"
FORMAT_VERSION = 1
HEADER_SIZE = 64
FOOTER_SIZE = 64
RUNTIME_VERSION_SIZE = 32
DIRECTORY_ENTRY_SIZE = 32
SCRIPT_TYPE_ENTRY_SIZE = 12
DEPENDENCY_PATH_SIZE = 64
DATA_ALIGNMENT = 8
TABLE_ALIGNMENT = 16

# Record payloads
FIELD_ALIGNMENT = 4
ASSET_REF_SIZE = 12
NO_SCRIPT = 0xFFFF

# Class ids of the built-in record classes the patcher deals with
CLASS_MATERIAL = 21
CLASS_TEXTURE_2D = 28
CLASS_MONO_BEHAVIOUR = 114
CLASS_MONO_SCRIPT = 115
CLASS_FONT = 128

CLASS_NAMES = {
    CLASS_MATERIAL: "Material",
    CLASS_TEXTURE_2D: "Texture2D",
    CLASS_MONO_BEHAVIOUR: "MonoBehaviour",
    CLASS_MONO_SCRIPT: "MonoScript",
    CLASS_FONT: "Font",
}

# Well-known container file names
LEAF_CONTAINER_NAME = "resources.assets"
DEPENDENT_CONTAINER_NAME = "sharedassets1.assets"

# Script types and their usual slot in the script-type table
FONT_ASSET_SCRIPT = "TMP_FontAsset"
SETTINGS_SCRIPT = "TMP_Settings"
LEAF_FONT_SCRIPT_HINT = 469
DEPENDENT_FONT_SCRIPT_HINT = 347

# m_AtlasPopulationMode value for fonts rendering glyphs from a source font
ATLAS_POPULATION_DYNAMIC = 1

__all__ = [
    "MAGIC",
    "FOOTER_MAGIC",
    "FORMAT_VERSION",
    "HEADER_SIZE",
    "FOOTER_SIZE",
    "RUNTIME_VERSION_SIZE",
    "DIRECTORY_ENTRY_SIZE",
    "SCRIPT_TYPE_ENTRY_SIZE",
    "DEPENDENCY_PATH_SIZE",
    "DATA_ALIGNMENT",
    "TABLE_ALIGNMENT",
    "FIELD_ALIGNMENT",
    "ASSET_REF_SIZE",
    "NO_SCRIPT",
    "CLASS_MATERIAL",
    "CLASS_TEXTURE_2D",
    "CLASS_MONO_BEHAVIOUR",
    "CLASS_MONO_SCRIPT",
    "CLASS_FONT",
    "CLASS_NAMES",
    "LEAF_CONTAINER_NAME",
    "DEPENDENT_CONTAINER_NAME",
    "FONT_ASSET_SCRIPT",
    "SETTINGS_SCRIPT",
    "LEAF_FONT_SCRIPT_HINT",
    "DEPENDENT_FONT_SCRIPT_HINT",
    "ATLAS_POPULATION_DYNAMIC",
]

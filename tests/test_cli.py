from __future__ import annotations

import json
import zipfile

from fontpatch.cli import main
from fontpatch.fonts.manager import FontManager
from fontpatch.reporting import PlainReporter, set_reporter

from game_fixture import atlas_payload, build_game, font_description, material_payload


def _package(tmp_path, font_json=None):
    path = tmp_path / "patch.zip"
    manifest = {
        "atlases": [{"path": "atlas.tex"}],
        "materials": [{"path": "atlas.mat", "atlas": 0}],
        "fonts": [{"path": "font.json", "material": 0}],
        "fontReplacements": {"Bangers SDF": 0},
    }
    with zipfile.ZipFile(path, "w") as z:
        z.writestr("manifest.json", json.dumps(manifest))
        z.writestr("atlas.tex", atlas_payload())
        z.writestr("atlas.mat", material_payload())
        z.writestr("font.json", font_json or json.dumps(font_description("Patched SDF", [65])))
    return path


def teardown_function(_):
    set_reporter(PlainReporter())


def test_patch_command(tmp_path):
    data = build_game(tmp_path / "game")
    assert main(["-r", "silent", "patch", str(data), str(_package(tmp_path))]) == 0
    with FontManager.open(data) as m:
        assert m.font_name(3) == "Patched SDF"


def test_patch_dry_run(tmp_path):
    data = build_game(tmp_path / "game")
    before = (data / "sharedassets1.assets").read_bytes()
    code = main(["-r", "silent", "patch", str(data), str(_package(tmp_path)), "--dry-run"])
    assert code == 0
    assert (data / "sharedassets1.assets").read_bytes() == before


def test_patch_with_missing_package_fails(tmp_path, capsys):
    data = build_game(tmp_path / "game")
    code = main(["patch", str(data), str(tmp_path / "nope.zip")])
    assert code == 1
    assert "Patch package not found" in capsys.readouterr().err


def test_patch_with_bad_manifest_fails(tmp_path, capsys):
    data = build_game(tmp_path / "game")
    pkg = tmp_path / "pkg"
    pkg.mkdir()
    (pkg / "manifest.json").write_text('{"fonts": [{"path": "a.json", "material": 3}]}')
    assert main(["patch", str(data), str(pkg)]) == 1
    assert "fonts[0].material" in capsys.readouterr().err


def test_inspect_command(tmp_path, capsys):
    data = build_game(tmp_path)
    assert main(["-r", "silent", "inspect", str(data / "resources.assets")]) == 0
    info = json.loads(capsys.readouterr().out)
    assert len(info["records"]) == 7
    assert info["footer"]["crc_match"] is True


def test_fonts_command(tmp_path, capsys):
    data = build_game(tmp_path)
    assert main(["-r", "silent", "fonts", str(data), "--json"]) == 0
    fonts = json.loads(capsys.readouterr().out)
    assert [f["name"] for f in fonts] == [
        "LiberationSans SDF",
        "Fallback SDF",
        "LiberationSans SDF",
        "Bangers SDF",
    ]


def test_fallbacks_command(tmp_path, capsys):
    data = build_game(tmp_path)
    assert main(["-r", "silent", "fallbacks", str(data)]) == 0
    out = capsys.readouterr().out
    assert "Bangers SDF (3): LiberationSans SDF (-5)" in out


def test_fonts_command_without_game_data(tmp_path, capsys):
    assert main(["fonts", str(tmp_path / "missing")]) == 1
    assert "Game data folder not found" in capsys.readouterr().err


def test_corrupt_zip_package_fails(tmp_path, capsys):
    data = build_game(tmp_path / "game")
    pkg = tmp_path / "patch.zip"
    pkg.write_bytes(b"not a zip archive")
    assert main(["patch", str(data), str(pkg)]) == 1
    assert "ERROR" in capsys.readouterr().err


def test_malformed_font_description_fails(tmp_path, capsys):
    data = build_game(tmp_path / "game")
    pkg = _package(tmp_path, font_json="{not json")
    assert main(["patch", str(data), str(pkg)]) == 1
    err = capsys.readouterr().err
    assert "font.json: Invalid font description" in err


def test_unparseable_type_tree_fails(tmp_path, capsys):
    data = build_game(tmp_path)
    (data / "typetree.json").write_text("{versions:", encoding="utf-8")
    assert main(["fonts", str(data)]) == 1
    assert "E_SCHEMA_MISMATCH: Cannot parse type tree" in capsys.readouterr().err


def test_inspect_short_container_fails(tmp_path, capsys):
    path = tmp_path / "tiny.assets"
    path.write_bytes(b"FPASSETS")
    assert main(["inspect", str(path)]) == 1
    assert "E_CORRUPT_CONTAINER" in capsys.readouterr().err

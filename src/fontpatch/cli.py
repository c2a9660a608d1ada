"""Command line interface for FontPatch."""

from __future__ import annotations

import argparse
import json
import sys
import zipfile
from pathlib import Path

from .api import (
    PatchOptions,
    apply_patch,
    fallback_graph,
    inspect_container,
    list_fonts,
)
from .assets.errors import FontPatchError
from .assets.inspector import validate_container
from .logging import configure_logging, step
from .manifest import ManifestError
from .reporting import (
    set_reporter,
    get_reporter,
    PlainReporter,
    JsonLinesReporter,
    SilentReporter,
    RichReporter,
    set_verbosity,
)


def _patch_cmd(args: argparse.Namespace) -> int:
    step(f"patching {args.game_data} with {args.package.name}")
    apply_patch(
        PatchOptions(
            game_data=args.game_data,
            package=args.package,
            schema_path=args.schema,
            dry_run=args.dry_run,
        )
    )
    return 0


def _inspect_cmd(args: argparse.Namespace) -> int:
    info = inspect_container(args.container)
    issues = validate_container(info)
    rep = get_reporter()
    rep.flush()
    print(json.dumps(info, indent=2, sort_keys=True))
    for issue in issues:
        rep.warning(issue)
    rep.status(
        "Inspect summary: "
        + f"records={len(info.get('records', []))} issues={len(issues)}"
    )
    return 1 if issues else 0


def _fallbacks_cmd(args: argparse.Namespace) -> int:
    text = fallback_graph(args.game_data, args.schema)
    get_reporter().flush()
    sys.stdout.write(text)
    return 0


def _fonts_cmd(args: argparse.Namespace) -> int:
    fonts = list_fonts(args.game_data, args.schema)
    get_reporter().flush()
    if args.json:
        print(json.dumps(fonts, indent=2))
    else:
        for f in fonts:
            print(
                f"{f['index']:>6}  {f['container']:<22} "
                f"{f['name']} ({f['characters']} characters)"
            )
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fontpatch", description="Font asset patching tool"
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (repeatable)",
    )
    p.add_argument(
        "-r",
        "--reporter",
        choices=["plain", "rich", "json", "silent"],
        default="plain",
        help="Select reporter backend: plain (default), rich, json (JSONL events), silent",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    pa = sub.add_parser("patch", help="Apply a patch package to a game")
    pa.add_argument("game_data", type=Path, help="Game data folder")
    pa.add_argument("package", type=Path, help="Patch folder or zip archive")
    pa.add_argument(
        "--schema", type=Path, help="Type tree document (JSON or YAML)"
    )
    pa.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Run every step but do not write the containers",
    )
    pa.set_defaults(func=_patch_cmd)

    i = sub.add_parser("inspect", help="Inspect an asset container file")
    i.add_argument("container", type=Path)
    i.set_defaults(func=_inspect_cmd)

    fb = sub.add_parser("fallbacks", help="Print the font fallback graph")
    fb.add_argument("game_data", type=Path)
    fb.add_argument("--schema", type=Path)
    fb.set_defaults(func=_fallbacks_cmd)

    fo = sub.add_parser("fonts", help="List font assets")
    fo.add_argument("game_data", type=Path)
    fo.add_argument("--schema", type=Path)
    fo.add_argument("--json", action="store_true", help="Emit JSON")
    fo.set_defaults(func=_fonts_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    requested = args.reporter
    if requested == "json":
        set_reporter(JsonLinesReporter())
    elif requested == "silent":
        set_reporter(SilentReporter())
    elif requested == "rich":
        if sys.stderr.isatty():
            set_reporter(RichReporter())
        else:
            # Fallback quietly to plain if no TTY
            set_reporter(PlainReporter())
    else:  # plain
        set_reporter(PlainReporter())
    set_verbosity(args.verbose)
    configure_logging(args.verbose)
    try:
        return args.func(args)
    except (FontPatchError, ManifestError, OSError, zipfile.BadZipFile) as e:
        rep = get_reporter()
        rep.error(str(e))
        rep.flush()
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

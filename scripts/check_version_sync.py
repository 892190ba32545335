#!/usr/bin/env python3
"""
Fail when pyproject.toml's version and httpop_core.__version__ disagree.
Usage: python scripts/check_version_sync.py [path/to/__init__.py]

The package is not imported (its dependencies need not be installed); the
version string is read straight from the source file.
"""
from __future__ import annotations
import pathlib
import re
import sys

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # Python 3.9–3.10
    import tomli as tomllib  # type: ignore[no-redef]

_VERSION_RE = re.compile(r"""^__version__\s*=\s*["']([^"']+)["']""", re.MULTILINE)


def main(argv: list[str]) -> int:
    root = pathlib.Path(__file__).resolve().parent.parent
    init_py = pathlib.Path(argv[1]) if len(argv) > 1 else root / "src" / "httpop_core" / "__init__.py"

    with open(root / "pyproject.toml", "rb") as f:
        ver_toml = tomllib.load(f)["project"]["version"]

    match = _VERSION_RE.search(init_py.read_text(encoding="utf-8"))
    if match is None:
        print(f"No __version__ found in {init_py}", file=sys.stderr)
        return 1

    if match.group(1) != ver_toml:
        print(f"Version mismatch: pyproject={ver_toml} != package={match.group(1)}", file=sys.stderr)
        return 1

    print(f"Version OK: {ver_toml}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))

from __future__ import annotations

from pathlib import Path

import pytest

from doc2pdf.core.config import Settings
from doc2pdf.main import create_app

# Stub de `soffice`: entiende `--outdir <dir>` y toma el último argumento
# como archivo de entrada; `$outdir` y `$name` quedan disponibles.
ENGINE_PREAMBLE = """#!/bin/sh
outdir=""
input=""
while [ $# -gt 0 ]; do
  case "$1" in
    --outdir) outdir="$2"; shift 2 ;;
    *) input="$1"; shift ;;
  esac
done
name=$(basename "$input")
name="${name%.*}"
"""

WRITE_PDF = "printf '%s' '%PDF-1.4 stub' > \"$outdir/$name.pdf\""

ENGINE_BODIES = {
    "success": WRITE_PDF,
    "fail": 'echo "Error: source file could not be loaded" >&2\nexit 77',
    "silent": "exit 0",
    "hang": "printf 'partial' > \"$outdir/$name.pdf\"\nsleep 5",
    "slow": "sleep 0.5\n" + WRITE_PDF,
    # Como soffice, deja un hijo vivo; publica su pid y el del hijo
    "hang_child": (
        'echo $$ > "$outdir/engine.pid"\n'
        "sleep 5 &\n"
        'echo $! > "$outdir/child.tmp"\n'
        'mv "$outdir/child.tmp" "$outdir/child.pid"\n'
        "wait"
    ),
}


@pytest.fixture
def make_engine(tmp_path):
    def _make(kind: str) -> str:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / f"soffice-{kind}"
        path.write_text(ENGINE_PREAMBLE + ENGINE_BODIES[kind] + "\n")
        path.chmod(0o755)
        return str(path)

    return _make


@pytest.fixture
def uploads_dir(tmp_path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def build_app(uploads_dir):
    def _build(engine: str, **overrides):
        settings = Settings(uploads_dir=uploads_dir, soffice_binary=engine, **overrides)
        return create_app(settings)

    return _build

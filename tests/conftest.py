import gzip
import logging
import os
import stat
import textwrap
from pathlib import Path

import pytest

# Stand-ins for the external tools. They honour the same arguments as the real
# binaries and write their outputs where the real ones would.
FAKE_TOOLS = {
    "NanoPlot": r"""
        outdir=""; prefix=""
        while [ $# -gt 0 ]; do
          case "$1" in
            --outdir) outdir="$2"; shift 2;;
            --prefix) prefix="$2"; shift 2;;
            *) shift;;
          esac
        done
        mkdir -p "$outdir"
        echo "General summary" > "$outdir/${prefix}NanoStats.txt"
    """,
    # Trims 10 bases from each end of every read
    "porechop": r"""
        in=""; out=""
        while [ $# -gt 0 ]; do
          case "$1" in
            -i) in="$2"; shift 2;;
            -o) out="$2"; shift 2;;
            *) shift;;
          esac
        done
        if [ -n "${FAKE_PORECHOP_FAIL_FOR:-}" ] && [[ "$in" == *"$FAKE_PORECHOP_FAIL_FOR"* ]]; then
          echo "porechop: simulated failure" >&2
          exit 1
        fi
        echo "Looking for known adapter sets"
        gzip -cdf "$in" | awk 'NR % 2 == 0 { print substr($0, 11, length($0) - 20); next } { print }' > "$out"
        echo "Done"
    """,
    "filtlong": r"""
        min=0; max=0; in=""
        while [ $# -gt 0 ]; do
          case "$1" in
            --min_length) min="$2"; shift 2;;
            --max_length) max="$2"; shift 2;;
            *) in="$1"; shift;;
          esac
        done
        echo "Scoring long reads" >&2
        gzip -cdf "$in" | awk -v min="$min" -v max="$max" '
          NR % 4 == 1 { h = $0 } NR % 4 == 2 { s = $0 } NR % 4 == 3 { p = $0 }
          NR % 4 == 0 { l = length(s); if (l >= min && (max == 0 || l <= max)) printf "%s\n%s\n%s\n%s\n", h, s, p, $0 }'
    """,
    # Two contigs of 100 and 200 bp, or nothing at all if FAKE_FLYE_EMPTY is set
    "flye": r"""
        mode=""; reads=""; out=""
        while [ $# -gt 0 ]; do
          case "$1" in
            --nano-hq|--nano-raw) mode="$1"; reads="$2"; shift 2;;
            --out-dir) out="$2"; shift 2;;
            *) shift;;
          esac
        done
        mkdir -p "$out"
        echo "$mode $reads" > "$out/flye.log"
        if [ -n "${FAKE_FLYE_EMPTY:-}" ]; then
          echo "ERROR: No disjointigs were assembled" >&2
          exit 1
        fi
        {
          echo ">contig_1"; head -c 100 /dev/zero | tr '\0' 'A'; echo
          echo ">contig_2"; head -c 200 /dev/zero | tr '\0' 'C'; echo
        } > "$out/assembly.fasta"
    """,
    "medaka_consensus": r"""
        draft=""; out=""
        args="$*"
        while [ $# -gt 0 ]; do
          case "$1" in
            -d) draft="$2"; shift 2;;
            -o) out="$2"; shift 2;;
            *) shift;;
          esac
        done
        mkdir -p "$out"
        echo "$args" > "$out/args.txt"
        if [ -n "${FAKE_MEDAKA_EMPTY:-}" ]; then
          exit 1
        fi
        cp "$draft" "$out/consensus.fasta"
    """,
}


@pytest.fixture
def temp_workdir(tmp_path):
    workdir = tmp_path / "work"
    workdir.mkdir()
    return workdir


@pytest.fixture
def fake_tools(tmp_path, monkeypatch):
    """Put shell script versions of the external tools first on PATH."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    for name, body in FAKE_TOOLS.items():
        script = bin_dir / name
        script.write_text("#!/usr/bin/env bash\nset -eo pipefail\n" + textwrap.dedent(body))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    for var in ("FAKE_PORECHOP_FAIL_FOR", "FAKE_FLYE_EMPTY", "FAKE_MEDAKA_EMPTY"):
        monkeypatch.delenv(var, raising=False)
    return bin_dir


def _fastq_text(lengths, name="read"):
    bases = "ACGT"
    records = []
    for i, n in enumerate(lengths):
        seq = "".join(bases[j % 4] for j in range(n))
        records.append(f"@{name}_{i}\n{seq}\n+\n{'I' * n}\n")
    return "".join(records)


@pytest.fixture
def make_reads():
    """Return a function writing a FASTQ (gzipped if the name ends in .gz) with
    one read per requested length."""

    def _make(path: Path, lengths) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        text = _fastq_text(lengths, name=path.name.split(".")[0])
        if path.name.endswith(".gz"):
            with gzip.open(path, "wt") as f:
                f.write(text)
        else:
            path.write_text(text)
        return path

    return _make


@pytest.fixture(autouse=True)
def _reset_package_logging():
    """Drop handlers the CLI attaches so they don't outlive a test's capture."""
    yield
    package_logger = logging.getLogger("ont_assembly")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

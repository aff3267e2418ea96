import gzip
import os
import shutil
from pathlib import Path
from typing import IO, Iterable, List, NamedTuple

import yaml

PathLike = str | Path

READ_FILE_GLOB = "*.fastq*"
FASTQ_MARKER = ".fastq"


class ReadFile(NamedTuple):
    path: Path
    sample: str  # filename with the .fastq[.gz] suffix dropped


ReadFiles = List[ReadFile]


def sample_name(path: PathLike) -> str:
    """Sample base name for a read file: everything before the first ".fastq"
    in the filename, so sampleA.fastq.gz becomes sampleA."""
    name = Path(path).name
    idx = name.find(FASTQ_MARKER)
    return name[:idx] if idx > 0 else name


def process_read_paths(paths: Iterable[PathLike]) -> ReadFiles:
    """For a list of input read files, derive each file's sample name and return
    a corresponding ReadFiles sorted by path.

    Throws an error if two files map to the same sample name, since their
    per-sample outputs would overwrite each other (e.g. reads.fastq and
    reads.fastq.gz in the same directory).
    """
    records = [ReadFile(Path(p), sample_name(p)) for p in sorted(paths)]
    seen: dict[str, Path] = {}
    for rec in records:
        if rec.sample in seen:
            raise ValueError(
                f"Duplicate sample name '{rec.sample}' derived from "
                f"{seen[rec.sample].name} and {rec.path.name}"
            )
        seen[rec.sample] = rec.path
    return records


def collect_read_files(input_dir: PathLike) -> ReadFiles:
    """List read files (glob *.fastq*) in a directory as ReadFiles."""
    input_dir = Path(input_dir)
    if not input_dir.is_dir():
        raise ValueError(f"Input directory does not exist: {input_dir}")
    paths = [p for p in input_dir.glob(READ_FILE_GLOB) if p.is_file()]
    if not paths:
        raise ValueError(f"No read files matching {READ_FILE_GLOB} found in {input_dir}")
    return process_read_paths(paths)


def open_maybe_gzip(path: PathLike) -> IO[str]:
    """Open a text file for reading, transparently decompressing .gz files."""
    if str(path).endswith(".gz"):
        return gzip.open(path, "rt")
    return open(path, "r")


def is_fastq(path: PathLike) -> bool:
    name = Path(path).name.lower()
    if name.endswith(".gz"):
        name = name[: -len(".gz")]
    return name.endswith(".fastq") or name.endswith(".fq")


def require_executables(names: Iterable[str]) -> None:
    """Raise if any external tool is missing from PATH."""
    missing = [n for n in names if shutil.which(n) is None]
    if missing:
        raise RuntimeError(f"Required tools not found in PATH: {', '.join(missing)}")


def publish(src: PathLike, out_dir: PathLike) -> Path:
    """Copy a file or directory into out_dir, replacing any earlier copy."""
    src = Path(src)
    dest = Path(out_dir) / src.name
    if src.is_dir():
        shutil.copytree(src, dest, dirs_exist_ok=True)
    else:
        shutil.copy2(src, dest)
    return dest


def load_config(yaml_path):
    with open(yaml_path, "r") as file:
        config = yaml.safe_load(file)
    return config or {}


def touch_empty(path: PathLike) -> Path:
    """Create (or truncate to) an empty file."""
    path = Path(path)
    with open(path, "w"):
        pass
    return path


def cpu_budget(threads: int) -> int:
    """Default number of samples to run at once for a per-tool thread count."""
    return max(1, (os.cpu_count() or 1) // max(1, threads))

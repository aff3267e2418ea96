import logging
import shutil
import subprocess
from pathlib import Path
from typing import List

from .io_helpers import PathLike, touch_empty
from .seq_stats import SeqStats, seq_file_stats

logger = logging.getLogger(__name__)

# File names used across functions; {sample} is the sample base name
QC_DIR = "{sample}-nanoplot"
TRIMMED_READS = "{sample}-trimmed.fastq"
TRIM_REPORT = "{sample}-porechop-report.txt"
FILTERED_READS = "{sample}-filtered.fastq"
FLYE_DIR = "{sample}-flye"
FLYE_ASSEMBLY = "assembly.fasta"
DRAFT_ASSEMBLY = "{sample}-draft-assembly.fasta"
MEDAKA_DIR = "{sample}-medaka"
MEDAKA_CONSENSUS = "consensus.fasta"
CORRECTED_ASSEMBLY = "{sample}-corrected-assembly.fasta"
LOG_FILE = "log.txt"


def _sample_file(workdir: Path, pattern: str, sample: str) -> Path:
    return workdir / pattern.format(sample=sample)


def _substitute_output(produced: Path, canonical: Path, tool: str) -> Path:
    """Copy a tool's output to its canonical name, or put an empty file there if
    the tool didn't produce one. Copy rather than move so the tool's own output
    directory stays complete."""
    if produced.is_file():
        shutil.copy2(produced, canonical)
    else:
        logger.warning(f"{tool} produced no {produced.name}; writing empty {canonical.name}")
        touch_empty(canonical)
    return canonical


def _run_qc_report(workdir: PathLike, sample: str, reads: PathLike, threads: int) -> Path:
    """Generate a NanoPlot quality report for a read file. Returns the report dir."""
    workdir = Path(workdir)
    qc_dir = _sample_file(workdir, QC_DIR, sample)
    # fmt: off
    cmd = [
        "NanoPlot",
        "--fastq", str(reads),
        "--outdir", str(qc_dir),
        "--prefix", f"{sample}-",
        "--threads", str(threads),
    ]
    # fmt: on
    with open(workdir / LOG_FILE, "a") as log:
        subprocess.run(cmd, stdout=log, stderr=log, check=True)
    return qc_dir


def _trim_adapters(workdir: PathLike, sample: str, reads: PathLike, threads: int) -> Path:
    """Remove ONT adapters with Porechop.

    Porechop's verbose progress output on stdout is kept as the sample's trimming
    report. A non-zero exit raises CalledProcessError.

    Returns:
        Path to the trimmed reads, workdir/<sample>-trimmed.fastq
    """
    workdir = Path(workdir)
    trimmed = _sample_file(workdir, TRIMMED_READS, sample)
    # fmt: off
    cmd = [
        "porechop",
        "-i", str(reads),
        "-o", str(trimmed),
        "--threads", str(threads),
        "--verbosity", "1",
    ]
    # fmt: on
    report_path = _sample_file(workdir, TRIM_REPORT, sample)
    with open(report_path, "w") as report, open(workdir / LOG_FILE, "a") as log:
        subprocess.run(cmd, stdout=report, stderr=log, check=True)
    return trimmed


def _length_filter_cmd(reads: PathLike, min_len: int, max_len: int) -> List[str]:
    cmd = ["filtlong"]
    if min_len > 0:
        cmd += ["--min_length", str(min_len)]
    if max_len > 0:
        cmd += ["--max_length", str(max_len)]
    cmd.append(str(reads))
    return cmd


def _length_filter_reads(
    workdir: PathLike, sample: str, reads: PathLike, min_len: int, max_len: int
) -> Path:
    """Drop reads outside [min_len, max_len] with Filtlong. A bound of 0 is not
    passed to Filtlong at all.

    Returns:
        Path to the filtered reads, workdir/<sample>-filtered.fastq
    """
    if min_len <= 0 and max_len <= 0:
        raise ValueError("Length filtering needs a minimum or maximum read length")
    workdir = Path(workdir)
    filtered = _sample_file(workdir, FILTERED_READS, sample)
    cmd = _length_filter_cmd(reads, min_len, max_len)
    # Filtlong writes reads to stdout
    with open(filtered, "w") as out, open(workdir / LOG_FILE, "a") as log:
        subprocess.run(cmd, stdout=out, stderr=log, check=True)
    return filtered


def _assemble_draft(
    workdir: PathLike, sample: str, reads: PathLike, read_type_flag: str, threads: int
) -> Path:
    """Assemble reads with Flye into workdir/<sample>-flye.

    Flye failing to assemble (no output, possibly with a non-zero exit) is not an
    error: the draft is then an empty fasta and the sample reports zero contigs.

    Args:
        workdir: Sample working directory
        sample: Sample name
        reads: Reads to assemble
        read_type_flag: --nano-hq or --nano-raw
        threads: Flye threads

    Returns:
        Path to workdir/<sample>-draft-assembly.fasta, possibly empty
    """
    workdir = Path(workdir)
    flye_dir = _sample_file(workdir, FLYE_DIR, sample)
    # fmt: off
    cmd = [
        "flye",
        read_type_flag, str(reads),
        "--out-dir", str(flye_dir),
        "--threads", str(threads),
    ]
    # fmt: on
    with open(workdir / LOG_FILE, "a") as log:
        result = subprocess.run(cmd, stdout=log, stderr=log)
    if result.returncode != 0:
        logger.warning(f"Flye exited with status {result.returncode} for {sample}")
    draft = _sample_file(workdir, DRAFT_ASSEMBLY, sample)
    return _substitute_output(flye_dir / FLYE_ASSEMBLY, draft, "Flye")


def _polish_assembly(
    workdir: PathLike,
    sample: str,
    reads: PathLike,
    draft: PathLike,
    threads: int,
    model: str,
    batch_size: int,
    draft_stats: SeqStats,
) -> Path:
    """Polish a draft assembly with medaka using the reads it was assembled from.

    Same soft failure handling as _assemble_draft. An empty draft is not sent to
    medaka at all; the corrected assembly is then empty as well.

    Returns:
        Path to workdir/<sample>-corrected-assembly.fasta, possibly empty
    """
    workdir = Path(workdir)
    medaka_dir = _sample_file(workdir, MEDAKA_DIR, sample)
    corrected = _sample_file(workdir, CORRECTED_ASSEMBLY, sample)
    if draft_stats.count == 0:
        logger.warning(f"Draft assembly for {sample} is empty; skipping medaka")
        return touch_empty(corrected)

    # fmt: off
    cmd = [
        "medaka_consensus",
        "-i", str(reads),
        "-d", str(draft),
        "-o", str(medaka_dir),
        "-t", str(threads),
        "-m", model,
        "-b", str(batch_size),
    ]
    # fmt: on
    with open(workdir / LOG_FILE, "a") as log:
        result = subprocess.run(cmd, stdout=log, stderr=log)
    if result.returncode != 0:
        logger.warning(f"medaka exited with status {result.returncode} for {sample}")
    return _substitute_output(medaka_dir / MEDAKA_CONSENSUS, corrected, "medaka")


def _step_stats(path: PathLike, sample: str, label: str) -> SeqStats:
    stats = seq_file_stats(path)
    logger.debug(f"{sample} {label}: {stats.count} records, mean length {stats.average_length}")
    return stats

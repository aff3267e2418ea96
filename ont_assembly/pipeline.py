import logging
import shutil
import subprocess
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, TypedDict

from .io_helpers import ReadFile, collect_read_files, publish, require_executables
from .pipeline_steps import (
    FLYE_DIR,
    LOG_FILE,
    TRIM_REPORT,
    _assemble_draft,
    _length_filter_reads,
    _polish_assembly,
    _run_qc_report,
    _sample_file,
    _step_stats,
    _trim_adapters,
)
from .run_config import RunConfig, Step
from .summary import SUMMARY_FILE, SummaryRecord, SummaryTable

logger = logging.getLogger(__name__)

PARAMETERS_FILE = "analysis-parameters.txt"
CONFIG_SNAPSHOT_FILE = "run-config.yaml"


class SampleResult(TypedDict):
    """Outcome of one sample: its summary row values and the artifacts published
    to the output directory."""

    sample: str
    summary: List[str]
    artifacts: List[str]


class RunMetrics(TypedDict):
    """
    Store statistics for a whole run. Samples appear in completion order; failed
    samples have no row in the summary table.
    """

    total_time: float
    samples: List[SampleResult]
    failed_samples: List[str]
    summary_path: str
    work_dir: str


def setup_run(config: RunConfig) -> SummaryTable:
    """Create the output directory and the run-scoped files written once per run:
    the parameters log, a snapshot of the configuration and the header-only
    summary table.

    Returns:
        The summary table every sample appends to
    """
    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    with open(output_dir / PARAMETERS_FILE, "w") as f:
        f.write("\n".join(config.parameters_log_lines()) + "\n")
    config.write_config(output_dir / CONFIG_SNAPSHOT_FILE)
    return SummaryTable(output_dir / SUMMARY_FILE, config.summary_header).create()


def assemble_sample(
    read_file: ReadFile, config: RunConfig, run_workdir: Path, table: SummaryTable
) -> SampleResult:
    """Run one sample through the run's step sequence, publish its artifacts and
    append its row to the summary table.

    Each step consumes the read set produced by the step before it; assembly and
    polishing both use whatever read set is current when they are reached.

    Raises:
        subprocess.CalledProcessError: If QC, trimming or filtering fails
        ValueError, EOFError: If a read file is malformed or truncated
    """
    sample = read_file.sample
    workdir = run_workdir / sample
    workdir.mkdir(parents=True, exist_ok=False)
    output_dir = Path(config.output_dir)
    logger.info(f"Processing {sample} ({read_file.path.name})")

    record = SummaryRecord(sample)
    record.add(_step_stats(read_file.path, sample, "raw reads"))
    artifacts: List[Path] = []

    if not config.skip_qc:
        artifacts.append(_run_qc_report(workdir, sample, read_file.path, config.threads))

    reads = read_file.path
    draft = None
    for step in config.steps:
        if step is Step.TRIM:
            reads = _trim_adapters(workdir, sample, reads, config.threads)
            artifacts += [reads, _sample_file(workdir, TRIM_REPORT, sample)]
            record.add(_step_stats(reads, sample, "trimmed reads"))
        elif step is Step.FILTER:
            reads = _length_filter_reads(
                workdir, sample, reads, config.min_read_len, config.max_read_len
            )
            artifacts.append(reads)
            record.add(_step_stats(reads, sample, "filtered reads"))
        elif step is Step.ASSEMBLE:
            draft = _assemble_draft(workdir, sample, reads, config.read_type_flag, config.threads)
            flye_dir = _sample_file(workdir, FLYE_DIR, sample)
            artifacts.append(draft)
            if flye_dir.is_dir():
                artifacts.append(flye_dir)
            record.add(_step_stats(draft, sample, "draft contigs"))
        elif step is Step.POLISH:
            corrected = _polish_assembly(
                workdir,
                sample,
                reads,
                draft,
                threads=config.threads,
                model=config.model,
                batch_size=config.medaka_batch_size,
                draft_stats=record.stats[-1],
            )
            artifacts.append(corrected)
            record.add(_step_stats(corrected, sample, "corrected contigs"))

    published = [publish(a, output_dir) for a in artifacts]
    table.append(record)
    logger.info(f"Finished {sample}")
    return {
        "sample": sample,
        "summary": record.to_row(),
        "artifacts": [str(p) for p in published],
    }


def assemble_samples(config: RunConfig) -> RunMetrics:
    """Assemble and polish every read file in config.input_dir.

    Samples are independent and run concurrently, config.parallel_samples at a
    time, each following the step sequence chosen by the trimming and length
    filtering options. A sample whose QC, trimming or filtering tool fails, or
    whose reads can't be parsed, is logged and left out of the summary table;
    the other samples carry on.

    Args:
        config: Validated run configuration

    Returns:
        RunMetrics describing completed and failed samples
    Raises:
        ValueError: If the configuration or the input directory is invalid
        RuntimeError: If a required tool is not on PATH
    """
    config.validate()
    read_files = collect_read_files(config.input_dir)
    require_executables(config.required_tools)

    start_time = time.time()
    table = setup_run(config)

    work_dir_parent = Path(config.work_dir_parent or config.output_dir)
    work_dir_parent.mkdir(parents=True, exist_ok=True)
    run_workdir = Path(tempfile.mkdtemp(prefix="work-", dir=work_dir_parent))

    logger.info(
        f"Assembling {len(read_files)} samples:\n  steps: {', '.join(s.value for s in config.steps)}"
        f"\n  workdir: {run_workdir}\n  output: {config.output_dir}"
    )

    results: List[SampleResult] = []
    failed: List[str] = []
    try:
        with ThreadPoolExecutor(max_workers=config.parallel_samples) as executor:
            futures = {
                executor.submit(assemble_sample, rf, config, run_workdir, table): rf.sample
                for rf in read_files
            }
            for future in as_completed(futures):
                sample = futures[future]
                try:
                    results.append(future.result())
                except subprocess.CalledProcessError as e:
                    logger.error(
                        f"Sample {sample} failed: {Path(e.cmd[0]).name} exited with status "
                        f"{e.returncode}; see {run_workdir / sample / LOG_FILE}"
                    )
                    failed.append(sample)
                except Exception as e:
                    # Unreadable or malformed read files fail only their own sample
                    logger.error(f"Sample {sample} failed: {type(e).__name__}: {e}")
                    failed.append(sample)
    finally:
        if config.cleanup:
            shutil.rmtree(run_workdir)
        else:
            logger.debug(f"Keeping working directory at {run_workdir}")

    if failed:
        logger.warning(f"{len(failed)} of {len(read_files)} samples failed: {', '.join(sorted(failed))}")

    return {
        "total_time": time.time() - start_time,
        "samples": results,
        "failed_samples": failed,
        "summary_path": str(table.path),
        "work_dir": str(run_workdir),
    }

"""
Command-line interface for ont-assembly.

Trims, length-filters, assembles (Flye) and polishes (medaka) every ONT read
file in a directory, and writes a per-sample statistics table.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .io_helpers import collect_read_files, load_config
from .pipeline import assemble_samples
from .run_config import DEFAULT_MEDAKA_BATCH_SIZE, DEFAULT_THREADS, RunConfig

logger = logging.getLogger(__name__)

LOG_FILE = "pipeline.log"


class _ArgumentParser(argparse.ArgumentParser):
    """Exit with status 1 on bad arguments, like any other configuration error."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the ont_assembly package logger with console and optional file
    output, replacing handlers from any earlier call.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_file: Path to a log file. If None, logs only to console

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger("ont_assembly")
    level = getattr(logging, log_level.upper())
    package_logger.setLevel(level)

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

        package_logger.info(f"Logging to file: {log_file}")

    return package_logger


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="ont-assembly",
        description="Assemble and polish Oxford Nanopore reads, one assembly per read file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Assemble every *.fastq* file in reads/ and polish with a medaka model
  ont-assembly --input reads --output results --model r941_min_hac_g507

  # Trim adapters and drop reads shorter than 1 kb first
  ont-assembly --input reads --output results --model r941_min_hac_g507 \\
      --trimONTAdapters --minReadLen 1000 --threads 8

  # Reads basecalled with Guppy < 5
  ont-assembly --input reads --output results --model r941_min_high_g360 --preGuppy5

Notes:
  - Options not given on the command line are taken from --config if provided
  - A read length bound of 0 means no bound; with neither bound set Filtlong is not run
        """,
    )

    # None defaults let config file values through; RunConfig holds the real defaults
    parser.add_argument("--input", type=Path, default=None,
                        help="Directory of read files (*.fastq, *.fastq.gz). Required")
    parser.add_argument("--output", type=Path, default=None,
                        help="Output directory, created if absent. Required")
    parser.add_argument("--model", type=str, default=None,
                        help="medaka model, passed through verbatim. Required")
    parser.add_argument("--trimONTAdapters", action="store_true", default=None,
                        help="Trim ONT adapters with Porechop before assembly")
    parser.add_argument("--minReadLen", type=int, default=None,
                        help="Filtlong minimum read length (default: 0, disabled)")
    parser.add_argument("--maxReadLen", type=int, default=None,
                        help="Filtlong maximum read length (default: 0, disabled)")
    parser.add_argument("--medakaBatchSize", type=int, default=None,
                        help="medaka batch size; lower it if the GPU runs out of memory "
                             f"(default: {DEFAULT_MEDAKA_BATCH_SIZE})")
    parser.add_argument("--preGuppy5", action="store_true", default=None,
                        help="Reads were basecalled with Guppy < 5 (Flye --nano-raw "
                             "instead of --nano-hq)")
    parser.add_argument("--threads", type=int, default=None,
                        help=f"Threads per tool invocation (default: {DEFAULT_THREADS})")
    parser.add_argument("--parallelSamples", type=int, default=None,
                        help="Samples processed at once (default: CPU count / threads)")
    parser.add_argument("--skipQC", action="store_true", default=None,
                        help="Don't generate NanoPlot reports for raw reads")
    parser.add_argument("--workDir", type=Path, default=None,
                        help="Parent directory for the run's work directory "
                             "(default: the output directory)")
    parser.add_argument("--cleanup", action="store_true", default=None,
                        help="Remove the work directory when the run finishes")
    parser.add_argument("--config", type=Path, default=None,
                        help="YAML file with run parameters; command-line options win")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        default="INFO", help="Logging verbosity (default: INFO)")
    parser.add_argument("--version", action="version", version=f"ont-assembly {__version__}")
    return parser


def resolve_config(args: argparse.Namespace) -> RunConfig:
    """Merge the optional config file with command-line options into a RunConfig."""
    base = RunConfig.from_config(load_config(args.config)) if args.config else RunConfig()
    return base.update(
        input_dir=args.input,
        output_dir=args.output,
        model=args.model,
        trim_adapters=args.trimONTAdapters,
        min_read_len=args.minReadLen,
        max_read_len=args.maxReadLen,
        medaka_batch_size=args.medakaBatchSize,
        pre_guppy5=args.preGuppy5,
        threads=args.threads,
        num_parallel=args.parallelSamples,
        skip_qc=args.skipQC,
        work_dir_parent=args.workDir,
        cleanup=args.cleanup,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = resolve_config(args)
        config.validate()
        read_files = collect_read_files(config.input_dir)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output_dir = config.output_dir.resolve()
    output_dir.mkdir(parents=True, exist_ok=True)
    setup_logging(log_level=args.log_level, log_file=str(output_dir / LOG_FILE))

    logger.info(f"Input: {config.input_dir} ({len(read_files)} read files)")
    logger.info(f"Output: {output_dir}")
    logger.info(f"Steps: {', '.join(s.value for s in config.steps)}")

    try:
        metrics = assemble_samples(config)
    except (RuntimeError, ValueError) as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nPipeline interrupted by user", file=sys.stderr)
        return 130

    logger.info(f"Summary table: {metrics['summary_path']}")
    if metrics["failed_samples"]:
        print(
            f"Error: {len(metrics['failed_samples'])} samples failed. "
            f"Check log file: {output_dir / LOG_FILE}",
            file=sys.stderr,
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

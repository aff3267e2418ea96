from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .io_helpers import PathLike, cpu_budget

DEFAULT_MEDAKA_BATCH_SIZE = 100
DEFAULT_THREADS = 1
DEFAULT_MIN_READ_LEN = 0
DEFAULT_MAX_READ_LEN = 0
DEFAULT_TRIM_ADAPTERS = False
DEFAULT_PRE_GUPPY5 = False
DEFAULT_SKIP_QC = False
DEFAULT_CLEANUP = False

SAMPLE_COLUMN = "Sample"
RAW_COLUMNS = ("Raw Reads", "Average Raw Read Length")


class Step(str, Enum):
    """Steps a sample can pass through after its raw reads are counted, with the
    summary columns each one contributes."""

    TRIM = "trim"
    FILTER = "filter"
    ASSEMBLE = "assemble"
    POLISH = "polish"

    @property
    def columns(self) -> Tuple[str, str]:
        return STEP_COLUMNS[self]


STEP_COLUMNS = {
    Step.TRIM: ("Trimmed Reads", "Average Trimmed Read Length"),
    Step.FILTER: ("Filtered Reads", "Average Filtered Read Length"),
    Step.ASSEMBLE: ("Draft Contigs", "Average Draft Contig Length"),
    Step.POLISH: ("Corrected Contigs", "Average Corrected Contig Length"),
}


def select_steps(trim_enabled: bool, length_filter_enabled: bool) -> Tuple[Step, ...]:
    """Choose the step sequence every sample of a run follows.

    Trimming runs before length filtering when both are enabled; assembly and
    polishing always run last.
    """
    if trim_enabled and length_filter_enabled:
        prefix: Tuple[Step, ...] = (Step.TRIM, Step.FILTER)
    elif trim_enabled:
        prefix = (Step.TRIM,)
    elif length_filter_enabled:
        prefix = (Step.FILTER,)
    else:
        prefix = ()
    return prefix + (Step.ASSEMBLE, Step.POLISH)


def summary_header(steps: Tuple[Step, ...]) -> List[str]:
    """Summary table columns for a step sequence."""
    header = [SAMPLE_COLUMN, *RAW_COLUMNS]
    for step in steps:
        header.extend(step.columns)
    return header


def _config_section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return section


def _config_int(section: Dict[str, Any], key: str, default: Optional[int]) -> Optional[int]:
    """Read an integer setting, accepting numeric strings such as '4'."""
    value = section.get(key, default)
    if value is None or (isinstance(value, int) and not isinstance(value, bool)):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValueError(f"Config value {key} must be an integer, got {value!r}")


def _config_bool(section: Dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"Config value {key} must be true or false, got {value!r}")


def _config_str(section: Dict[str, Any], key: str) -> Optional[str]:
    value = section.get(key)
    return None if value is None else str(value)


@dataclass(frozen=True)
class RunConfig:
    """Parameters of one pipeline invocation, fixed for its whole duration and
    shared by every sample.

    Attributes:
        input_dir (Path): Directory holding the *.fastq* read files.
        output_dir (Path): Where results are published; created if absent.
        model (str): medaka model name, passed through verbatim.
        trim_adapters (bool): Run Porechop before assembly.
        min_read_len (int): Filtlong --min_length; 0 disables the bound.
        max_read_len (int): Filtlong --max_length; 0 disables the bound.
        medaka_batch_size (int): medaka -b. Larger values need more GPU memory.
        pre_guppy5 (bool): Reads were basecalled before Guppy 5, so Flye gets
            --nano-raw instead of --nano-hq.
        threads (int): Threads given to each tool invocation.
        num_parallel (int): Samples processed at once; None means derive from
            the CPU count and threads.
        skip_qc (bool): Don't run NanoPlot on raw reads.
        work_dir_parent (Path): Parent of the run's work directory; defaults to
            output_dir.
        cleanup (bool): Remove the work directory once the run finishes.
    """

    input_dir: Optional[Path] = None
    output_dir: Optional[Path] = None
    model: Optional[str] = None
    trim_adapters: bool = DEFAULT_TRIM_ADAPTERS
    min_read_len: int = DEFAULT_MIN_READ_LEN
    max_read_len: int = DEFAULT_MAX_READ_LEN
    medaka_batch_size: int = DEFAULT_MEDAKA_BATCH_SIZE
    pre_guppy5: bool = DEFAULT_PRE_GUPPY5
    threads: int = DEFAULT_THREADS
    num_parallel: Optional[int] = None
    skip_qc: bool = DEFAULT_SKIP_QC
    work_dir_parent: Optional[Path] = None
    cleanup: bool = DEFAULT_CLEANUP

    def __post_init__(self):
        for name in ("input_dir", "output_dir", "work_dir_parent"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                object.__setattr__(self, name, Path(value))

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "RunConfig":
        """Build a RunConfig from a config dict as loaded from YAML (see
        to_yaml_config for the layout). Missing keys take their defaults."""
        if not isinstance(config, dict):
            raise ValueError("Config file must contain a mapping of sections")
        reads = _config_section(config, "reads")
        assembly = _config_section(config, "assembly")
        polishing = _config_section(config, "polishing")
        run = _config_section(config, "run")

        return cls(
            input_dir=reads.get("input_dir"),
            output_dir=run.get("output_dir"),
            model=_config_str(polishing, "model"),
            trim_adapters=_config_bool(reads, "trim_adapters", DEFAULT_TRIM_ADAPTERS),
            min_read_len=_config_int(reads, "min_read_len", DEFAULT_MIN_READ_LEN),
            max_read_len=_config_int(reads, "max_read_len", DEFAULT_MAX_READ_LEN),
            medaka_batch_size=_config_int(polishing, "batch_size", DEFAULT_MEDAKA_BATCH_SIZE),
            pre_guppy5=_config_bool(assembly, "pre_guppy5", DEFAULT_PRE_GUPPY5),
            threads=_config_int(run, "threads", DEFAULT_THREADS),
            num_parallel=_config_int(run, "num_parallel", None),
            skip_qc=_config_bool(reads, "skip_qc", DEFAULT_SKIP_QC),
            work_dir_parent=run.get("work_dir"),
            cleanup=_config_bool(run, "cleanup", DEFAULT_CLEANUP),
        )

    def update(self, **overrides: Any) -> "RunConfig":
        """Return a copy with the given fields replaced. None values are ignored so
        unset command-line options don't clobber config file values."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown configuration fields: {sorted(unknown)}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def anchor_paths(self, base_dir: PathLike) -> "RunConfig":
        """Return a copy whose relative directories are taken relative to base_dir,
        e.g. the directory holding the config file they came from."""
        base_dir = Path(base_dir)
        return self.update(
            **{
                name: base_dir / getattr(self, name)
                for name in ("input_dir", "output_dir", "work_dir_parent")
                if getattr(self, name) is not None
            }
        )

    def validate(self) -> None:
        """Raise ValueError if the configuration can't be run."""
        if self.input_dir is None:
            raise ValueError("Input directory is required (--input)")
        if not self.input_dir.is_dir():
            raise ValueError(f"Input directory does not exist: {self.input_dir}")
        if self.output_dir is None:
            raise ValueError("Output directory is required (--output)")
        if not self.model:
            raise ValueError("medaka model is required (--model)")
        if self.threads < 1:
            raise ValueError(f"threads must be at least 1, got {self.threads}")
        if self.num_parallel is not None and self.num_parallel < 1:
            raise ValueError(f"parallel samples must be at least 1, got {self.num_parallel}")
        if self.min_read_len < 0 or self.max_read_len < 0:
            raise ValueError("Read length bounds must not be negative")
        if 0 < self.max_read_len < self.min_read_len:
            raise ValueError(
                f"Minimum read length {self.min_read_len} exceeds maximum {self.max_read_len}"
            )

    @property
    def length_filter_enabled(self) -> bool:
        return self.min_read_len > 0 or self.max_read_len > 0

    @property
    def steps(self) -> Tuple[Step, ...]:
        return select_steps(self.trim_adapters, self.length_filter_enabled)

    @property
    def summary_header(self) -> List[str]:
        return summary_header(self.steps)

    @property
    def read_type_flag(self) -> str:
        return "--nano-raw" if self.pre_guppy5 else "--nano-hq"

    @property
    def parallel_samples(self) -> int:
        if self.num_parallel is not None:
            return self.num_parallel
        return cpu_budget(self.threads)

    @property
    def required_tools(self) -> List[str]:
        """Executables this run will invoke."""
        tools = []
        if not self.skip_qc:
            tools.append("NanoPlot")
        tool_for_step = {
            Step.TRIM: "porechop",
            Step.FILTER: "filtlong",
            Step.ASSEMBLE: "flye",
            Step.POLISH: "medaka_consensus",
        }
        tools.extend(tool_for_step[step] for step in self.steps)
        return tools

    def parameters_log_lines(self) -> List[str]:
        return [
            f"Medaka model: {self.model}",
            f"Medaka batch size: {self.medaka_batch_size}",
        ]

    def to_yaml_config(self) -> Dict[str, Any]:
        """Convert the run configuration to the nested layout read by from_config."""

        def _path(p: Optional[Path]) -> Optional[str]:
            return None if p is None else str(p)

        return {
            "reads": {
                "input_dir": _path(self.input_dir),
                "trim_adapters": self.trim_adapters,
                "min_read_len": self.min_read_len,
                "max_read_len": self.max_read_len,
                "skip_qc": self.skip_qc,
            },
            "assembly": {
                "pre_guppy5": self.pre_guppy5,
            },
            "polishing": {
                "model": self.model,
                "batch_size": self.medaka_batch_size,
            },
            "run": {
                "output_dir": _path(self.output_dir),
                "work_dir": _path(self.work_dir_parent),
                "threads": self.threads,
                "num_parallel": self.num_parallel,
                "cleanup": self.cleanup,
            },
        }

    def write_config(self, yaml_path) -> None:
        """Write the run configuration to a YAML file loadable with from_config.

        Args:
            yaml_path: Path where the YAML file should be written
        """
        with open(yaml_path, "w") as f:
            yaml.dump(self.to_yaml_config(), f, default_flow_style=False)

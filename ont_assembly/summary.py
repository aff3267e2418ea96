import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence

from .io_helpers import PathLike
from .seq_stats import SeqStats

logger = logging.getLogger(__name__)

SUMMARY_FILE = "stats-summary.csv"
DELIMITER = ","


@dataclass
class SummaryRecord:
    """Statistics gathered for one sample as it moves through the pipeline, in the
    order they were collected: raw reads first, then one entry per step run."""

    sample: str
    stats: List[SeqStats] = field(default_factory=list)

    def add(self, stats: SeqStats) -> "SummaryRecord":
        self.stats.append(stats)
        return self

    def to_row(self) -> List[str]:
        row = [self.sample]
        for s in self.stats:
            row.extend([str(s.count), str(s.average_length)])
        return row


class SummaryTable:
    """Shared per-run CSV of sample statistics.

    Created with just its header; rows are appended as samples finish, from any
    number of worker threads. Each row goes out as a single write under a lock
    on a file opened in append mode, so lines from concurrent samples never
    interleave.
    """

    def __init__(self, path: PathLike, header: Sequence[str]):
        self.path = Path(path)
        self.header = list(header)
        self._lock = threading.Lock()

    def create(self) -> "SummaryTable":
        """Write the header, replacing any existing table."""
        with open(self.path, "w") as f:
            f.write(DELIMITER.join(self.header) + "\n")
        return self

    def append(self, record: SummaryRecord) -> None:
        """Append one sample's row.

        Raises:
            ValueError: If the row width doesn't match the header
        """
        row = record.to_row()
        if len(row) != len(self.header):
            raise ValueError(
                f"Summary row for {record.sample} has {len(row)} fields, "
                f"header has {len(self.header)}"
            )
        line = DELIMITER.join(row) + "\n"
        with self._lock:
            with open(self.path, "a") as f:
                f.write(line)
        logger.debug(f"Recorded summary for {record.sample}")

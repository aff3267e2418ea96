from pathlib import Path
from typing import NamedTuple

from Bio.SeqIO.FastaIO import SimpleFastaParser
from Bio.SeqIO.QualityIO import FastqGeneralIterator

from .io_helpers import PathLike, is_fastq, open_maybe_gzip


class SeqStats(NamedTuple):
    """Record count and average record length (bp, rounded) of a sequence file.
    Files without records report SeqStats(0, 0)."""

    count: int
    average_length: int


EMPTY_STATS = SeqStats(0, 0)


def seq_file_stats(path: PathLike) -> SeqStats:
    """Count records and compute average length of a FASTA or FASTQ file.

    The format is chosen from the extension (.fastq/.fq, optionally gzipped, is
    FASTQ; anything else is treated as FASTA). Missing and empty files give
    EMPTY_STATS rather than a division by zero.

    Args:
        path: Sequence file, possibly gzip-compressed

    Returns:
        SeqStats with the number of records and the rounded mean length
    """
    path = Path(path)
    if not path.is_file() or path.stat().st_size == 0:
        return EMPTY_STATS

    count = 0
    total = 0
    with open_maybe_gzip(path) as handle:
        if is_fastq(path):
            # Parse by record rather than SeqIO.parse: no per-read SeqRecord objects
            for _title, seq, _qual in FastqGeneralIterator(handle):
                count += 1
                total += len(seq)
        else:
            for _title, seq in SimpleFastaParser(handle):
                count += 1
                total += len(seq)

    if count == 0:
        return EMPTY_STATS
    return SeqStats(count, round(total / count))

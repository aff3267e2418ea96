import gzip

import pytest

from ont_assembly.seq_stats import EMPTY_STATS, SeqStats, seq_file_stats


@pytest.mark.fast
@pytest.mark.unit
def test_fastq_stats(tmp_path, make_reads):
    reads = make_reads(tmp_path / "s.fastq", [100, 200, 300, 401])
    assert seq_file_stats(reads) == SeqStats(4, 250)


@pytest.mark.fast
@pytest.mark.unit
def test_gzipped_fastq_stats(tmp_path, make_reads):
    reads = make_reads(tmp_path / "s.fastq.gz", [10, 20, 30, 40])
    assert seq_file_stats(reads) == SeqStats(4, 25)


@pytest.mark.fast
@pytest.mark.unit
def test_fasta_stats(tmp_path):
    fasta = tmp_path / "contigs.fasta"
    fasta.write_text(">c1\nACGTACGTAC\nGTAC\n>c2\nAC\n")
    # multi-line records are joined: lengths 14 and 2
    assert seq_file_stats(fasta) == SeqStats(2, 8)


@pytest.mark.fast
@pytest.mark.unit
def test_quality_line_starting_with_at(tmp_path):
    fq = tmp_path / "tricky.fq"
    fq.write_text("@r1\nACGT\n+\n@III\n@r2\nAC\n+\n@I\n")
    assert seq_file_stats(fq) == SeqStats(2, 3)


@pytest.mark.fast
@pytest.mark.unit
def test_empty_and_missing_files(tmp_path):
    empty = tmp_path / "empty.fasta"
    empty.touch()
    assert seq_file_stats(empty) == EMPTY_STATS == SeqStats(0, 0)
    assert seq_file_stats(tmp_path / "missing.fastq") == EMPTY_STATS

    empty_gz = tmp_path / "empty.fastq.gz"
    with gzip.open(empty_gz, "wt"):
        pass
    assert seq_file_stats(empty_gz) == EMPTY_STATS


@pytest.mark.fast
@pytest.mark.unit
def test_average_is_rounded(tmp_path, make_reads):
    reads = make_reads(tmp_path / "s.fastq", [1, 2])
    assert seq_file_stats(reads).average_length == 2

import threading

import pytest

from ont_assembly.run_config import RunConfig
from ont_assembly.seq_stats import SeqStats
from ont_assembly.summary import SummaryRecord, SummaryTable


@pytest.mark.fast
@pytest.mark.unit
def test_record_to_row():
    record = SummaryRecord("sampleA").add(SeqStats(10, 750)).add(SeqStats(0, 0))
    assert record.to_row() == ["sampleA", "10", "750", "0", "0"]


@pytest.mark.fast
@pytest.mark.unit
def test_table_header_and_append(tmp_path):
    header = RunConfig().summary_header
    table = SummaryTable(tmp_path / "stats-summary.csv", header).create()
    assert (tmp_path / "stats-summary.csv").read_text() == ",".join(header) + "\n"

    record = SummaryRecord("s")
    for stats in [SeqStats(10, 750), SeqStats(2, 150), SeqStats(2, 151)]:
        record.add(stats)
    table.append(record)
    lines = (tmp_path / "stats-summary.csv").read_text().splitlines()
    assert lines[1] == "s,10,750,2,150,2,151"


@pytest.mark.fast
@pytest.mark.unit
def test_table_rejects_row_of_wrong_width(tmp_path):
    table = SummaryTable(tmp_path / "t.csv", RunConfig().summary_header).create()
    with pytest.raises(ValueError, match="3 fields, header has 7"):
        table.append(SummaryRecord("s").add(SeqStats(1, 1)))
    assert len((tmp_path / "t.csv").read_text().splitlines()) == 1


@pytest.mark.fast
@pytest.mark.unit
def test_concurrent_appends_write_whole_lines(tmp_path):
    header = RunConfig(trim_adapters=True, min_read_len=1).summary_header
    table = SummaryTable(tmp_path / "t.csv", header).create()
    n_samples = 64

    def write(i):
        record = SummaryRecord(f"sample{i:02d}")
        for _ in range(5):
            record.add(SeqStats(i * 1000, i * 123456))
        table.append(record)

    threads = [threading.Thread(target=write, args=(i,)) for i in range(n_samples)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    lines = (tmp_path / "t.csv").read_text().splitlines()
    assert len(lines) == n_samples + 1
    rows = [line.split(",") for line in lines[1:]]
    assert all(len(row) == len(header) for row in rows)
    assert sorted(row[0] for row in rows) == [f"sample{i:02d}" for i in range(n_samples)]
    for row in rows:
        i = int(row[0][len("sample"):])
        assert row[1:] == [str(i * 1000), str(i * 123456)] * 5

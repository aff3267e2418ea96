##
# Example script running the pipeline from Python rather than the ont-assembly CLI.
# Porechop, Filtlong, Flye, medaka and NanoPlot must be on PATH.
##

import logging
from pathlib import Path

from ont_assembly.io_helpers import load_config
from ont_assembly.pipeline import assemble_samples
from ont_assembly.run_config import RunConfig

logging.basicConfig(level=logging.INFO)

script_dir = Path(__file__).parent

##
# Load parameters; anything not in config.yaml takes its default
##

config = RunConfig.from_config(load_config(script_dir / "config.yaml"))

# Relative paths in config.yaml are relative to this directory, not the CWD
config = config.anchor_paths(script_dir)

# Values can be overridden per invocation, e.g. to try a stricter length filter
config = config.update(min_read_len=2000)

##
# Run every sample in the input directory
##

metrics = assemble_samples(config)
print(f"Assembled {len(metrics['samples'])} samples in {metrics['total_time']:.0f}s")
for result in metrics["samples"]:
    print(",".join(result["summary"]))
if metrics["failed_samples"]:
    print(f"Failed: {', '.join(metrics['failed_samples'])}")

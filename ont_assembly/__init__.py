"""Long-read assembly of Oxford Nanopore samples: adapter trimming, length
filtering, Flye assembly and medaka polishing, one assembly per read file."""

__version__ = "0.1.0"

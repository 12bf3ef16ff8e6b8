"""Grid detector decoding with an adaptive, latency-bounded capture pipeline."""

__version__ = "0.1.0"

"""Movie Engine: prompt-to-movie generation pipeline."""

__version__ = "0.1.0"

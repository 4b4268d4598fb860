"""depslice: bounded, deterministic dependency slices of a codebase."""

__version__ = "0.1.0"

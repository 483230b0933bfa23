"""wslstack — resumable installer for a single-node Hadoop learning stack on WSL2."""

__version__ = "0.1.0"

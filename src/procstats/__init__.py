"""procstats: rank processes by their memory cost over recent history."""

__version__ = "0.1.0"

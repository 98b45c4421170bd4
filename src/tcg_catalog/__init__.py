"""Rate-limited TCGplayer catalog client and bulk category dumper."""

__version__ = "0.1.0"

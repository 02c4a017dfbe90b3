"""
DailyPli

Keeps a YouTube playlist in sync with a channel's latest matching uploads.
"""

__version__ = "1.0.0"

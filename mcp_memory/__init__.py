"""
Tiered per-user memory: canonical SQLite rows mirrored into a vector overlay.
"""

__version__ = "1.0.0"

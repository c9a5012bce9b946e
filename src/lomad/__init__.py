"""
lomad - LOOT masterlist repository maintenance.

Automates branch management and single-file edits against the masterlist
repositories hosted on GitHub, working directly on the Git Data API without
a local clone, and verifies that every link in a masterlist still resolves.
"""

__version__ = "1.0.0"
__author__ = "LOOT Team"

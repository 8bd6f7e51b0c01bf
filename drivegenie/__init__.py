"""
DriveGenie — configure and emit unattended Synology Drive deployment agents.
"""

__version__ = "0.1.0"

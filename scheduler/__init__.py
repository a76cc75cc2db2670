"""
Scheduler package for the scan and notification pipeline.

This package contains:
- Periodic scan scheduler
- Update detection engine
- Notification fan-out and message rendering
- Tracker service wiring them together
"""

__version__ = "1.0.0"

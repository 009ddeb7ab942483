"""
Daily: a personal daily task tracker.

Packages:
- tasks/: task model, SQLite store, daily reset scheduler, high-level task helpers
- notifications/: reminder synchronization and the local notification center
- core/: ports (protocols), preferences, application state
- cli/, connectors/: composition root and the console presentation layer
"""

__version__ = "0.3.0"

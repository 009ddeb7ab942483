"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskCategory)
- task_store.py: SQLite-backed storage + query/update helpers
- reset_scheduler.py: daily reset timer and reset-owed checks
- task_api.py: small high-level helpers used by the rest of the app
"""

"""
Reminder subsystem.

Components:
- models.py: identifiers, requests, authorization status, sync results
- synchronizer.py: reconciles scheduled reminders with incomplete tasks
- local_center.py: SQLite-backed notification center + delivery loop (desktop toasts)
"""

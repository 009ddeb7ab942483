"""
Core wiring.

Components:
- ports.py: protocols for the task store, the notification service and the presentation layer
- preferences.py: user preferences snapshot + change notifications
- state.py: AppState, the explicitly wired set of managers
"""

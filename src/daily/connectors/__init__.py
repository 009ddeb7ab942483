"""Presentation connectors (console) and the background service loop."""

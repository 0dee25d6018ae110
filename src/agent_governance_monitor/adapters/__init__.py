"""Adapters — external integrations for the governance monitor.

Contains:
- repositories.py     — SQLAlchemy repositories and the admin directory
- analyzer_client.py  — LLM gateway client (semantic analyzer)
- notifier.py         — Email relay client for admin notifications
"""

__all__: list[str] = []

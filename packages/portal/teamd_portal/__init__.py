"""
Team D Portal Client

Non-UI logic shared by the admin and user portals: the API client, the
session state machine, cross-tab logout sync and current-instance selection.
"""

__version__ = "1.0.0"

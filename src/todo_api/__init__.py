"""
Todo API package.

FastAPI service managing todo items: filtered listing, creation, partial
update, deletion, and an hourly job that completes overdue todos. The app
instance lives in `todo_api.main`.
"""

__version__ = "0.1.0"

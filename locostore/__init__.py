"""
Loco store package.

An embedded SQLite document store for a loco control application: JSON
record repositories with full-text search, named loco views, and a
versioned schema behind a single async connection.
"""

__version__ = "1.0.0"

"""
Dockmaster Sync
Incremental synchronization of Dockmaster work orders into a local PostgreSQL store.
"""

__version__ = '1.0.0'

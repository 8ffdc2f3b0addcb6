"""
Order Ingestion
===============

Access to the provisioned store holding the raw orders table, and the
in-memory OrderStore the cleaning stages operate on.

Loading the CSV into the store happens upstream; this package only reads
the raw rows and writes cleaned columns and snapshots back.
"""

__version__ = "1.0.0"

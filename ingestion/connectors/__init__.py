"""
Store Connectors
================

Connectors for the relational store holding raw orders.
"""

from .sql_connector import SQLConnector

__all__ = ["SQLConnector"]

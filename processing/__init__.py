"""
Processing Module
=================

Data processing for the food delivery orders dataset.

Layers:
- staging: Raw to cleaned (date/duration parsing, imputation, business flags)
- curated: Analytics projection and KPI reports
"""


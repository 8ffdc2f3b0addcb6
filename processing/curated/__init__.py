"""
Curated Layer
=============

Analytics projection and KPI reports over cleaned orders.
"""

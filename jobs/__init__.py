"""Job entry points for the food delivery KPI pipeline."""

"""Pytest configuration and fixtures."""

import json

import pandas as pd
import pytest

from ingestion.connectors.sql_connector import SQLConnector
from ingestion.order_store import OrderStore
from processing.pipeline import CleaningPipeline


@pytest.fixture
def raw_records():
    """
    Five raw orders as they sit in the store after CSV import.

    Durations: 10, 45, 40, 41, 5 minutes.
    Order times: only the second and fourth fall in the 19-21 window.
    """
    return [
        {
            "order_id": "0x4607", "delivery_person_id": "INDORES13DEL02",
            "delivery_person_age": 37.0, "delivery_person_ratings": 4.5,
            "order_date": "19-03-2022", "time_ordered": "11:30:00",
            "time_taken_min": "(min) 10", "weather_conditions": "Sunny",
            "road_traffic_density": "High", "festival": "No", "city": "Urban",
        },
        {
            "order_id": "0xb379", "delivery_person_id": "BANGRES18DEL02",
            "delivery_person_age": 34.0, "delivery_person_ratings": 5.0,
            "order_date": "19-03-2022", "time_ordered": "19:45:00",
            "time_taken_min": "(min) 45", "weather_conditions": "Stormy",
            "road_traffic_density": "Jam", "festival": "No", "city": "Metropolitian",
        },
        {
            "order_id": "0x5d6d", "delivery_person_id": "INDORES13DEL02",
            "delivery_person_age": None, "delivery_person_ratings": 4.0,
            "order_date": "20-03-2022", "time_ordered": "12:00:00",
            "time_taken_min": "(min) 40", "weather_conditions": "Sunny",
            "road_traffic_density": "Low", "festival": None, "city": "Urban",
        },
        {
            "order_id": "0x7a6a", "delivery_person_id": "COIMBRES13DEL02",
            "delivery_person_age": 23.0, "delivery_person_ratings": 4.75,
            "order_date": "21-03-2022", "time_ordered": "21:15:00",
            "time_taken_min": "(min) 41", "weather_conditions": "Fog",
            "road_traffic_density": "Jam", "festival": "Yes", "city": "Semi-Urban",
        },
        {
            "order_id": "0x70a2", "delivery_person_id": "CHENRES12DEL01",
            "delivery_person_age": 37.0, "delivery_person_ratings": None,
            "order_date": "20-03-2022", "time_ordered": "08:10:00",
            "time_taken_min": "(min) 5", "weather_conditions": None,
            "road_traffic_density": None, "festival": "No", "city": "Metropolitian",
        },
    ]


@pytest.fixture
def raw_orders_df(raw_records):
    return pd.DataFrame(raw_records)


@pytest.fixture
def order_store(raw_orders_df):
    return OrderStore(raw_orders_df)


@pytest.fixture
def cleaned_store(order_store):
    CleaningPipeline().run(order_store)
    return order_store


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite:///{tmp_path / 'orders.db'}"


@pytest.fixture
def sqlite_connector(sqlite_url, raw_orders_df):
    """SQLConnector over a file-backed SQLite store seeded with raw_orders."""
    connector = SQLConnector({"url": sqlite_url})
    connector.connect()
    raw_orders_df.to_sql("raw_orders", connector.engine, index=False)
    yield connector
    connector.disconnect()


@pytest.fixture
def job_settings_file(tmp_path, sqlite_url):
    """job_settings.json pointing at the SQLite store, console logging off."""
    settings = {
        "job_settings": {"name": "food_delivery_kpi_test"},
        "connections": {"store": {"url": sqlite_url}},
        "tables": {
            "raw": "raw_orders",
            "analytics": "orders_analytics",
            "rejected": "rejected_orders"
        },
        "business_rules": {
            "sla_threshold_minutes": 40,
            "peak_hour_start": 19,
            "peak_hour_end": 21,
            "min_orders_per_partner": 1
        },
        "logging": {
            "level": "INFO",
            "console": False,
            "log_to_file": True,
            "log_path": str(tmp_path / "logs" / "job.log"),
            "postgres": {"enabled": False}
        },
        "output_dir": str(tmp_path / "reports")
    }
    path = tmp_path / "job_settings.json"
    path.write_text(json.dumps(settings))
    return str(path)

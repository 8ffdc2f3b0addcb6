"""
Pipeline Settings
=================

Business rules, imputation sentinels and parsing patterns for the
order cleaning pipeline. Module-level constants are the defaults;
PipelineSettings carries per-run overrides loaded from job_settings.json.
"""

from typing import Dict, Optional

# Business rules
SLA_THRESHOLD_MINUTES = 40
PEAK_HOUR_START = 19
PEAK_HOUR_END = 21
MIN_ORDERS_PER_PARTNER = 30

# Parsing
DATE_FORMAT = "%d-%m-%Y"
DURATION_PREFIX = "(min) "

# Imputation sentinels
WEATHER_SENTINEL = "Unknown"
# Misspelled in the source store; downstream reports group on this literal.
TRAFFIC_SENTINEL = "Unkown"
FESTIVAL_DEFAULT = "No"

# Rounding applied to imputed means
AGE_DECIMALS = 0
RATING_DECIMALS = 2

# Tables
RAW_TABLE = "raw_orders"
ANALYTICS_TABLE = "orders_analytics"
REJECTED_TABLE = "rejected_orders"

KEY_COLUMN = "order_id"

DERIVED_COLUMNS = [
    "clean_order_date",
    "delivery_duration",
    "sla_breach_flag",
    "peak_hour_flag",
]

ANALYTICS_COLUMNS = [
    "order_id",
    "clean_order_date",
    "time_ordered",
    "delivery_duration",
    "sla_breach_flag",
    "peak_hour_flag",
    "city",
    "weather_conditions",
    "road_traffic_density",
]

REQUIRED_RAW_COLUMNS = [
    "order_id",
    "order_date",
    "time_ordered",
    "time_taken_min",
    "delivery_person_age",
    "delivery_person_ratings",
    "weather_conditions",
    "road_traffic_density",
    "festival",
    "city",
]

OPTIONAL_RAW_COLUMNS = [
    "delivery_person_id",
    "restaurant_latitude",
    "restaurant_longitude",
    "delivery_location_latitude",
    "delivery_location_longitude",
    "time_order_picked",
    "vehicle_condition",
    "type_of_order",
    "type_of_vehicle",
    "multiple_deliveries",
]


class PipelineSettings:
    """Resolved settings for one pipeline run."""

    def __init__(
        self,
        sla_threshold_minutes: int = SLA_THRESHOLD_MINUTES,
        peak_hour_start: int = PEAK_HOUR_START,
        peak_hour_end: int = PEAK_HOUR_END,
        min_orders_per_partner: int = MIN_ORDERS_PER_PARTNER,
        date_format: str = DATE_FORMAT,
        duration_prefix: str = DURATION_PREFIX,
        weather_sentinel: str = WEATHER_SENTINEL,
        traffic_sentinel: str = TRAFFIC_SENTINEL,
        festival_default: str = FESTIVAL_DEFAULT,
        raw_table: str = RAW_TABLE,
        analytics_table: str = ANALYTICS_TABLE,
        rejected_table: str = REJECTED_TABLE
    ):
        if not 0 <= peak_hour_start <= peak_hour_end <= 23:
            raise ValueError(
                f"Invalid peak window: {peak_hour_start}-{peak_hour_end}"
            )
        if sla_threshold_minutes < 0:
            raise ValueError(f"Invalid SLA threshold: {sla_threshold_minutes}")

        self.sla_threshold_minutes = sla_threshold_minutes
        self.peak_hour_start = peak_hour_start
        self.peak_hour_end = peak_hour_end
        self.min_orders_per_partner = min_orders_per_partner
        self.date_format = date_format
        self.duration_prefix = duration_prefix
        self.weather_sentinel = weather_sentinel
        self.traffic_sentinel = traffic_sentinel
        self.festival_default = festival_default
        self.raw_table = raw_table
        self.analytics_table = analytics_table
        self.rejected_table = rejected_table

    @classmethod
    def from_config(cls, config: Optional[Dict] = None) -> "PipelineSettings":
        """
        Build settings from a job_settings.json dictionary.

        Args:
            config: Parsed settings; missing sections fall back to defaults

        Returns:
            PipelineSettings instance
        """
        config = config or {}
        rules = config.get("business_rules", {})
        imputation = config.get("imputation", {})
        parsing = config.get("parsing", {})
        tables = config.get("tables", {})

        return cls(
            sla_threshold_minutes=rules.get("sla_threshold_minutes", SLA_THRESHOLD_MINUTES),
            peak_hour_start=rules.get("peak_hour_start", PEAK_HOUR_START),
            peak_hour_end=rules.get("peak_hour_end", PEAK_HOUR_END),
            min_orders_per_partner=rules.get("min_orders_per_partner", MIN_ORDERS_PER_PARTNER),
            date_format=parsing.get("date_format", DATE_FORMAT),
            duration_prefix=parsing.get("duration_prefix", DURATION_PREFIX),
            weather_sentinel=imputation.get("weather_sentinel", WEATHER_SENTINEL),
            traffic_sentinel=imputation.get("traffic_sentinel", TRAFFIC_SENTINEL),
            festival_default=imputation.get("festival_default", FESTIVAL_DEFAULT),
            raw_table=tables.get("raw", RAW_TABLE),
            analytics_table=tables.get("analytics", ANALYTICS_TABLE),
            rejected_table=tables.get("rejected", REJECTED_TABLE)
        )

    def to_dict(self) -> Dict:
        return dict(vars(self))

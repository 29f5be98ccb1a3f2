"""
delivery_analytics/data_contract.py

Single Source of Truth for Data Quality Rules.
"""

# Versioning allows us to track which rules were active
# for a specific pipeline run.
CONTRACT_VERSION = "1.0.0"


# -------------------------------------------------------------------
# Schema Definition
# -------------------------------------------------------------------
DATE_COLUMNS = ["Order_Date"]

TIME_COLUMNS = ["Order_Time", "Pickup_Time"]
TIME_FORMAT = "%H:%M:%S"

INTEGER_COLUMNS = ["Agent_Age"]

STORE_COORDS = ("Store_Latitude", "Store_Longitude")
DROP_COORDS = ("Drop_Latitude", "Drop_Longitude")
COORDINATE_PAIRS = [STORE_COORDS, DROP_COORDS]

NUMERIC_COLUMNS = [
    "Agent_Age",
    "Agent_Rating",
    *STORE_COORDS,
    *DROP_COORDS,
    "Delivery_Time",
]

CATEGORICAL_COLUMNS = ["Traffic", "Weather", "Vehicle", "Area", "Category"]

REQUIRED_COLUMNS = [
    "Order_Date",
    "Order_Time",
    "Pickup_Time",
    "Agent_Age",
    "Agent_Rating",
    *STORE_COORDS,
    *DROP_COORDS,
    "Traffic",
    "Weather",
    "Vehicle",
    "Area",
    "Category",
    "Delivery_Time",
]


# -------------------------------------------------------------------
# Domain Rules (Inclusive Boundaries)
# -------------------------------------------------------------------
# Delivery Time (minutes): anything under 2 minutes is a scan error,
# anything over 4 hours is not a last-mile delivery.
DELIVERY_TIME_MIN = 2
DELIVERY_TIME_MAX = 240

# Agent Age: legal working age up to a generous upper bound.
AGENT_AGE_MIN = 16
AGENT_AGE_MAX = 90

# Agent Rating: 5-star scale. The raw export contains 6.0 ratings.
AGENT_RATING_MIN = 0.0
AGENT_RATING_MAX = 5.0

# Coordinates: latitude sign is a data-entry artifact in this dataset,
# so valid latitudes are non-negative.
LATITUDE_MIN = 0.0
LATITUDE_MAX = 90.0
LONGITUDE_MIN = -180.0
LONGITUDE_MAX = 180.0


# -------------------------------------------------------------------
# Categorical Rules
# -------------------------------------------------------------------
# Placeholders the export uses for "not recorded".
# Compared lower-cased after stripping whitespace.
SENTINEL_VALUES = ["unknown", "nan"]


# -------------------------------------------------------------------
# Derived Columns
# -------------------------------------------------------------------
ORDER_HOUR = "Order_Hour"
LATE_DELIVERY = "Late_Delivery"
# 1 where the coordinate repairer rewrote an out-of-range value.
COORDINATES_REPAIRED = "Coordinates_Repaired"
LATE_QUANTILE = 0.75

# Age buckets used by the dashboard (right-inclusive bin edges).
AGE_GROUP_BINS = [AGENT_AGE_MIN - 1, 24, 40, AGENT_AGE_MAX]
AGE_GROUP_LABELS = ["<25", "25-40", "40+"]

"""
Streamlit dashboard for last-mile delivery analytics.

Usage:
    python main.py --config params.yaml     # writes the feature snapshot
    streamlit run streamlit_app.py

Reads the feature snapshot written by the pipeline. Late_Delivery labels come
from the snapshot (75th percentile of the full cleaned table) and are not
recomputed when filters change.
"""

import os

import streamlit as st
import plotly.express as px
import yaml

import delivery_analytics.data_contract as dc
from delivery_analytics import dashboard_views as views
from delivery_analytics.model_trainer import LINEAR_REGRESSION, RANDOM_FOREST, ModelTrainer
from delivery_analytics.feature_engineering import FeatureEngineer
from delivery_analytics.snapshot import load_snapshot

st.set_page_config(layout="wide", page_title="Last-mile Delivery Dashboard")

PARAMS_PATH = os.environ.get("DELIVERY_PARAMS", "params.yaml")


@st.cache_data
def load_params(path):
    with open(path, "r") as f:
        return yaml.safe_load(f)


@st.cache_data
def load_data(path):
    return load_snapshot(path)


@st.cache_resource
def load_models(path, params):
    """Train both models once on the full snapshot."""
    features = params["features"]
    engineer = FeatureEngineer(
        numerical_features=features["numerical"],
        categorical_features=features["categorical"],
        target=features["target"],
    )
    trainer = ModelTrainer(
        n_estimators=int(params["model"]["n_estimators"]),
        random_state=int(params["model"]["random_state"]),
        numerical_features=features["numerical"],
        categorical_features=features["categorical"],
    )
    X, y = engineer.model_matrix(load_data(path))
    trainer.fit(X, y)
    return trainer


params = load_params(PARAMS_PATH)
snapshot_path = params["data"]["feature_snapshot"]

if not os.path.exists(snapshot_path):
    st.error(f"Snapshot {snapshot_path} not found. Run `python main.py` first.")
    st.stop()

df = load_data(snapshot_path)
options = views.filter_options(df)

# ---------- App layout ----------
st.title("Last-mile Delivery: Delay Analyzer Dashboard")

with st.sidebar:
    st.header("Filters")
    min_date, max_date = options["date_range"]
    date_range = st.date_input("Order date range", value=(min_date, max_date), min_value=min_date, max_value=max_date)
    traffic_sel = st.multiselect("Traffic", options=options["Traffic"])
    weather_sel = st.multiselect("Weather", options=options["Weather"])
    vehicle_sel = st.multiselect("Vehicle", options=options["Vehicle"])
    area_sel = st.multiselect("Area", options=options["Area"])
    min_age, max_age = options["age_range"]
    age_range = st.slider("Agent age", min_value=min_age, max_value=max_age, value=(min_age, max_age))

flt = views.DashboardFilter(
    date_range=tuple(date_range) if len(date_range) == 2 else None,
    traffic=traffic_sel,
    weather=weather_sel,
    vehicle=vehicle_sel,
    area=area_sel,
    age_range=age_range,
)
filtered = views.apply_filters(df, flt)

# ---------- Key metrics ----------
st.subheader("Key metrics")
metrics = views.key_metrics(filtered)
col1, col2, col3, col4 = st.columns(4)
col1.metric("Deliveries", f"{metrics['deliveries']:,}")
col2.metric("Average delivery time (min)", "N/A" if metrics["mean_delivery"] is None else f"{metrics['mean_delivery']:.1f}")
col3.metric("Median delivery time (min)", "N/A" if metrics["median_delivery"] is None else f"{metrics['median_delivery']:.1f}")
col4.metric("% Late deliveries", "N/A" if metrics["pct_late"] is None else f"{metrics['pct_late']:.1f}%")

st.markdown("---")

if filtered.empty:
    st.write("No data for selected filters.")
    st.stop()

# 1) Delay Analyzer
st.subheader("Delay Analyzer: Avg Delivery Time by Weather & Traffic")
grp = views.mean_delivery_by(filtered, ["Weather", "Traffic"])
fig1 = px.bar(grp, x="Weather", y="Delivery_Time", color="Traffic", barmode="group",
              labels={"Delivery_Time": "Avg Delivery Time (min)"})
st.plotly_chart(fig1, use_container_width=True)

# 2) Vehicle Comparison
left, right = st.columns(2)
with left:
    st.subheader("Avg Delivery Time by Vehicle")
    veh = views.mean_delivery_by(filtered, ["Vehicle"]).sort_values("Delivery_Time")
    st.plotly_chart(px.bar(veh, x="Vehicle", y="Delivery_Time",
                           labels={"Delivery_Time": "Avg Delivery Time (min)"}), use_container_width=True)
with right:
    st.subheader("% Late by Traffic")
    late = views.late_rate_by(filtered, "Traffic")
    st.plotly_chart(px.bar(late, x="Traffic", y="% Late"), use_container_width=True)

# 3) Agent Performance
st.subheader("Agent Performance: Rating vs Delivery Time")
fig3 = px.scatter(filtered, x="Agent_Rating", y="Delivery_Time", color="Agent_Age_Group",
                  labels={"Delivery_Time": "Delivery Time (min)", "Agent_Rating": "Agent Rating"})
st.plotly_chart(fig3, use_container_width=True)

# 4) Area Heatmap
st.subheader("Area Heatmap: Avg Delivery Time by Area and Order Hour")
pivot = views.heatmap_frame(filtered)
fig4 = px.imshow(pivot, labels=dict(x="Order hour", y="Area", color="Avg Delivery Time (min)"),
                 x=pivot.columns.astype(str), y=pivot.index, aspect="auto")
st.plotly_chart(fig4, use_container_width=True)

# 5) Category Visualizer
left, right = st.columns(2)
with left:
    st.subheader("Delivery Time by Category")
    st.plotly_chart(px.box(filtered, x="Category", y="Delivery_Time", points="outliers"), use_container_width=True)
with right:
    st.subheader("Deliveries per Category")
    st.plotly_chart(px.bar(views.counts_by(filtered, "Category"), x="Category", y="Deliveries"),
                    use_container_width=True)

# 6) Map
st.subheader("Store and Drop Locations")
points = views.map_frame(filtered)
hover = [c for c in ("Area", "Delivery_Time", dc.COORDINATES_REPAIRED) if c in points.columns]
fig6 = px.scatter_map(points, lat="Latitude", lon="Longitude", color="Point",
                      hover_data=hover, zoom=3, height=500)
st.plotly_chart(fig6, use_container_width=True)

with st.expander("Optional visuals"):
    st.markdown("**Monthly trends (avg Delivery_Time by month)**")
    st.plotly_chart(px.line(views.monthly_trend(filtered), x="Order_Month", y="Delivery_Time", markers=True),
                    use_container_width=True)
    st.markdown("**Delivery time quartiles by Area**")
    st.dataframe(views.delivery_quantiles_by(filtered, "Area"))

# ---------- What-if prediction ----------
st.markdown("---")
st.header("What-if Delivery Time")
trainer = load_models(snapshot_path, params)

with st.form(key="predict_form"):
    c1, c2, c3 = st.columns(3)
    with c1:
        traffic = st.selectbox("Traffic", options["Traffic"])
        weather = st.selectbox("Weather", options["Weather"])
    with c2:
        vehicle = st.selectbox("Vehicle", options["Vehicle"])
        area = st.selectbox("Area", options["Area"])
    with c3:
        rating = st.number_input("Agent Rating", min_value=dc.AGENT_RATING_MIN, max_value=dc.AGENT_RATING_MAX,
                                 value=4.5, step=0.1)
        hour = st.slider("Order hour", 0, 23, 12)
    submitted = st.form_submit_button("Predict")

if submitted:
    record = {
        "Traffic": traffic,
        "Weather": weather,
        "Vehicle": vehicle,
        "Area": area,
        "Agent_Rating": rating,
        dc.ORDER_HOUR: hour,
    }
    predictions = trainer.predict(record)
    c1, c2 = st.columns(2)
    for column, name, label in ((c1, LINEAR_REGRESSION, "Linear regression"), (c2, RANDOM_FOREST, "Random forest")):
        value = predictions[name]
        column.metric(label, "prediction unavailable" if value is None else f"{value:.1f} min")

st.caption("Adjust filters in the sidebar to update all charts.")

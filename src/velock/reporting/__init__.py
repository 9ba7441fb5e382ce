"""CSV/JSON export and Plotly charts."""

from .charts import create_decay_chart, create_fee_chart, create_weight_chart
from .export import export_csv, export_events_csv, export_json, metrics_frame, weight_schedule_frame

__all__ = [
    "create_decay_chart",
    "create_fee_chart",
    "create_weight_chart",
    "export_csv",
    "export_events_csv",
    "export_json",
    "metrics_frame",
    "weight_schedule_frame",
]

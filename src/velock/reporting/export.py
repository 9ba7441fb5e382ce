"""Export functionality for CSV and JSON."""

import json
from typing import Optional

import pandas as pd

from ..engine.lock_ledger import LockLedger
from ..simulation.runner import SimulationResult


def metrics_frame(result: SimulationResult) -> pd.DataFrame:
    """Per-epoch metrics as a DataFrame, with whole-token columns added."""
    df = pd.DataFrame(result.metrics_over_time)
    if df.empty:
        return df
    unit = 10 ** result.config.simulation.token_decimals
    df['locked_tokens'] = [int(v) / unit for v in df['locked_principal']]
    df['total_weight_tokens'] = [int(v) / unit for v in df['total_weight']]
    return df


def weight_schedule_frame(ledger: LockLedger, user: Optional[str] = None) -> pd.DataFrame:
    """Weight series of one user (or the aggregate) joined with its unlock buckets."""
    weights = ledger.weight_series(user)
    rows = []
    for epoch, weight in weights.items():
        rows.append({
            'epoch': epoch,
            'weight': weight,
            'unlock': ledger.unlock_at(user, epoch) if user is not None else None,
        })
    return pd.DataFrame(rows, columns=['epoch', 'weight', 'unlock'])


def export_csv(result: SimulationResult, filepath: str):
    """Export per-epoch simulation metrics to CSV."""
    metrics_frame(result).to_csv(filepath, index=False)


def export_events_csv(result: SimulationResult, filepath: str):
    """Export the emitted event log to CSV, one row per event."""
    pd.DataFrame(result.events).to_csv(filepath, index=False)


def export_json(result: SimulationResult, filepath: str, include_events: bool = False):
    """Export simulation results to JSON."""
    export_data = {
        'config': result.config.to_dict(),
        'config_hash': result.config.compute_hash(),
        'metrics_over_time': result.metrics_over_time,
        'final_metrics': result.final_metrics,
        'conservation_errors': result.conservation_errors,
    }
    if include_events:
        export_data['events'] = result.events

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2)

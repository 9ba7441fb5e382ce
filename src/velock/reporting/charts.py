"""Chart generation using Plotly."""

from typing import Any, Dict, List

import plotly.graph_objects as go

from ..engine.lock_ledger import LockLedger

THEME = {
    "text": "#e8eaed",
    "text_secondary": "#9aa0a6",
    "grid": "rgba(30, 33, 36, 0.8)",
    "cyan": "#00d4ff",
    "cyan_fill": "rgba(0, 212, 255, 0.12)",
    "amber": "#ffab00",
    "amber_fill": "rgba(255, 171, 0, 0.12)",
    "green": "#00e676",
    "red": "#ff5252",
}


def apply_dark_layout(fig: go.Figure, title: str, x_title: str, y_title: str, showlegend: bool = True) -> None:
    """Apply the dark theme layout shared by all charts."""
    fig.update_layout(
        title={
            "text": title,
            "x": 0,
            "xanchor": "left",
            "font": {"size": 11, "color": THEME["text_secondary"]}
        },
        xaxis_title=x_title,
        yaxis_title=y_title,
        hovermode="x unified",
        template="plotly_dark",
        height=340,
        margin=dict(l=50, r=20, t=40, b=40),
        showlegend=showlegend,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0),
        plot_bgcolor="rgba(8, 9, 10, 1)",
        paper_bgcolor="rgba(8, 9, 10, 1)",
        font={"color": THEME["text"], "size": 11},
        xaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"]),
        yaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"])
    )


def create_weight_chart(metrics_over_time: List[Dict[str, Any]], unit: int) -> go.Figure:
    """Aggregate weight and locked principal per epoch."""
    epochs = [m['epoch'] for m in metrics_over_time]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=epochs,
        y=[m['total_weight'] / unit for m in metrics_over_time],
        name='Total weight',
        mode='lines',
        line=dict(color=THEME["cyan"], width=2),
        fill='tozeroy',
        fillcolor=THEME["cyan_fill"]
    ))
    fig.add_trace(go.Scatter(
        x=epochs,
        y=[m['locked_principal'] / unit for m in metrics_over_time],
        name='Locked principal',
        mode='lines',
        line=dict(color=THEME["amber"], width=2),
        yaxis='y2'
    ))
    apply_dark_layout(fig, "LOCK WEIGHT", "Epoch", "Weight (token-epochs)")
    fig.update_layout(yaxis2=dict(title="Tokens", overlaying='y', side='right', showgrid=False))
    return fig


def create_fee_chart(metrics_over_time: List[Dict[str, Any]], symbol: str, unit: int) -> go.Figure:
    """Fees deposited against fees claimed for one token."""
    epochs = [m['epoch'] for m in metrics_over_time]

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=epochs,
        y=[m[f'fees_deposited_{symbol}'] / unit for m in metrics_over_time],
        name='Deposited',
        marker_color=THEME["cyan"]
    ))
    fig.add_trace(go.Bar(
        x=epochs,
        y=[m[f'fees_claimed_{symbol}'] / unit for m in metrics_over_time],
        name='Claimed',
        marker_color=THEME["green"]
    ))
    apply_dark_layout(fig, f"{symbol} FEE FLOWS", "Epoch", symbol)
    fig.update_layout(barmode='group')
    return fig


def create_decay_chart(ledger: LockLedger, user: str, unit: int) -> go.Figure:
    """Scheduled weight of one user, stepping down to zero at each unlock."""
    series = ledger.weight_series(user)
    epochs = sorted(series)

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=epochs,
        y=[series[e] / unit for e in epochs],
        name=user,
        mode='lines',
        line=dict(color=THEME["cyan"], width=2, shape='hv'),
        fill='tozeroy',
        fillcolor=THEME["cyan_fill"]
    ))
    current = ledger.current_epoch
    fig.add_vline(x=current, line_dash="dash", line_color=THEME["red"])
    apply_dark_layout(fig, f"WEIGHT SCHEDULE - {user}", "Epoch", "Weight (token-epochs)", showlegend=False)
    return fig

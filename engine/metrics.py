"""Market-level metrics for dashboards: totals, inequality and leaderboard."""

from typing import Any, Dict, List, Mapping, Sequence


def compute_gini(values: List[float]) -> float:
    """Compute the Gini coefficient of a list of values."""
    n = len(values)
    if n <= 1:
        return 0.0
    total = sum(values)
    if total == 0.0:
        return 0.0
    sorted_vals = sorted(values)
    weighted_sum = 0.0
    for i, v in enumerate(sorted_vals):
        weighted_sum += (2 * (i + 1) - n - 1) * v
    return weighted_sum / (n * total)


def compute_market_metrics(
    participants: Mapping[str, Mapping[str, Any]],
    chain: Sequence[Mapping[str, Any]],
    leaderboard_size: int = 5,
) -> Dict[str, Any]:
    """Aggregate metrics from a participant snapshot and a ledger in wire shape."""
    flats = list(participants.values())
    credits = [float(f.get("credits", 0.0)) for f in flats]
    trades = [t for block in chain for t in block.get("trades", [])]
    ranked = sorted(flats, key=lambda f: f.get("credits", 0.0), reverse=True)
    return {
        "participants": len(flats),
        "total_generation_kw": sum(float(f.get("generation_kw", 0.0)) for f in flats),
        "total_demand_kw": sum(float(f.get("demand_kw", 0.0)) for f in flats),
        "total_soc_kwh": sum(float(f.get("soc_kwh", 0.0)) for f in flats),
        "total_credits": sum(credits),
        "credit_gini": compute_gini(credits),
        "block_count": len(chain),
        "trade_count": len(trades),
        "traded_energy_kwh": sum(float(t.get("amount_kwh", 0.0)) for t in trades),
        "traded_credits": sum(float(t.get("energy_credits", 0.0)) for t in trades),
        "leaderboard": [
            {"id": f["id"], "credits": f.get("credits", 0.0)}
            for f in ranked[:leaderboard_size]
        ],
    }

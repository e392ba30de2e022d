"""Risk library: Monte Carlo risk of ruin and prop firm evaluation outlook."""

from tradestats.libraries.risk.models import EvaluationState, PropFirmPrediction, PropFirmProfile, RuinEstimate
from tradestats.libraries.risk.monte_carlo import (
    account_proxy,
    consecutive_loss_probability,
    simulate_ruin,
)
from tradestats.libraries.risk.prop_firm import predict_prop_firm

__all__ = [
    "EvaluationState",
    "PropFirmPrediction",
    "PropFirmProfile",
    "RuinEstimate",
    "account_proxy",
    "consecutive_loss_probability",
    "predict_prop_firm",
    "simulate_ruin",
]

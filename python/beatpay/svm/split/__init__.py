"""Producer/platform split transfers.

A single buyer payment is divided by basis points (80% producer, 20%
platform by default) and moved in one atomic transaction.
"""

from beatpay.svm.split.builder import build_split_transfer, simulate_transfer
from beatpay.svm.split.types import (
    SplitLeg,
    SplitPlan,
    SplitRatio,
    calculate_split_amounts,
    calculate_split_plan,
)

__all__ = [
    # Types
    "SplitLeg",
    "SplitPlan",
    "SplitRatio",
    "calculate_split_amounts",
    "calculate_split_plan",
    # Builder
    "build_split_transfer",
    "simulate_transfer",
]

"""Root conftest for all tests - shared trade fixtures and logging reset."""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path for test helper imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

TEN_TRADE_PNLS = [500, -200, 300, -100, 700, -50, 400, -150, 250, -80]


@pytest.fixture
def ten_trades():
    """Ten dated trades: 6 winners, 4 losers, net +1570."""
    return [
        {
            "id": f"t{i + 1}",
            "date": f"2024-03-{i + 4:02d}T14:30:00Z",
            "symbol": "ES",
            "pnl": pnl,
            "playbook": "breakout" if i % 2 == 0 else "reversal",
        }
        for i, pnl in enumerate(TEN_TRADE_PNLS)
    ]


@pytest.fixture
def undated_ten_trades():
    """The ten-trade scenario with P&L only."""
    return [{"pnl": pnl} for pnl in TEN_TRADE_PNLS]

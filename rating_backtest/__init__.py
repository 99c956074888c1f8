"""Rating backtest engine.

Evaluates BUY/SELL/HOLD rating calls from an external rating oracle against
realized price movement over successive time windows.
"""

from __future__ import annotations

__version__ = "0.1.0"

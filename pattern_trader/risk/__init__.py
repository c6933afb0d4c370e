"""Risk: exit-condition state machine, market regime, day-trading breaker and sizing."""

from pattern_trader.risk.exits import ExitDecision, ExitEvaluator, PositionState
from pattern_trader.risk.manager import RiskManager, RiskResult, YearlyDrawdownBreaker
from pattern_trader.risk.regime import RegimeAnalysis, RegimeConfig, RegimeTracker, detect_regime

__all__ = [
    "ExitDecision",
    "ExitEvaluator",
    "PositionState",
    "RegimeAnalysis",
    "RegimeConfig",
    "RegimeTracker",
    "RiskManager",
    "RiskResult",
    "YearlyDrawdownBreaker",
    "detect_regime",
]

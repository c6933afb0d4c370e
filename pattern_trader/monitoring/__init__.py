"""Live components: exit monitor and pattern scanner."""

from pattern_trader.monitoring.monitor import ExitMonitor, MonitorState
from pattern_trader.monitoring.scanner import AutoTradeConfig, PatternScanner, within_trading_hours

__all__ = ["ExitMonitor", "MonitorState", "AutoTradeConfig", "PatternScanner", "within_trading_hours"]

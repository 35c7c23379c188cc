from .heal_check import HealCheckProber, HealCheckRun, ProbeResult
from .health import ProxyHealthAggregator, aggregate, classify, top_performers

__all__ = [
    "HealCheckProber",
    "HealCheckRun",
    "ProbeResult",
    "ProxyHealthAggregator",
    "aggregate",
    "classify",
    "top_performers",
]

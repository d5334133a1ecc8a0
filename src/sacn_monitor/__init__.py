"""
sACN Monitor: E1.31 streaming lighting-control traffic observer.

Receives sACN data packets over unicast, broadcast and multicast,
tracks per-universe channel levels and reports packet rate and
sequence-gap loss for every universe and source.
"""

__version__ = "0.1.0"
__author__ = "sACN Monitor Team"

from sacn_monitor.core.config import Settings
from sacn_monitor.monitor import SacnMonitor, UniverseSummary

__all__ = [
    "SacnMonitor",
    "UniverseSummary",
    "Settings",
    "__version__",
]

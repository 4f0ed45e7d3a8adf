"""mediapace - media plan pacing and billing allocation engine."""

from .mediaplan import Burst, LineItem, normalize
from .pacing import PacingCache, build_cache_key, compute_to_date, time_elapsed_pct
from .billing import build_billing_schedule

__version__ = "1.0.0"

__all__ = [
    "Burst",
    "LineItem",
    "normalize",
    "compute_to_date",
    "time_elapsed_pct",
    "PacingCache",
    "build_cache_key",
    "build_billing_schedule",
    "__version__",
]

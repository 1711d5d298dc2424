from .sweeper import SweepTarget, SweepPredicate, SweepReport, MatchedRow, sweep, preview, normalize_targets
from .integrity import bed_occupancy_rule, scan_integrity

__all__ = [
    'SweepTarget',
    'SweepPredicate',
    'SweepReport',
    'MatchedRow',
    'sweep',
    'preview',
    'normalize_targets',
    'bed_occupancy_rule',
    'scan_integrity',
]

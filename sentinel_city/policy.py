"""
Sentinel City: intervention simulator.

Projects an active case estimate through a fixed reduction factor per policy.
"""

import math

from sentinel_city.errors import InvalidInputError
from sentinel_city.helpers import round_half_up, utc_now_iso

REDUCTION_FACTORS = {
    'mobile_clinic':       0.35,
    'mask_advisory':       0.25,
    'traffic_restriction': 0.20,
}
DEFAULT_REDUCTION = 0.15

HOSPITAL_LOAD_PER_CASE = 0.2
HOSPITAL_LOAD_CAP      = 100
COST_PER_CASE_AVERTED  = 500


def parse_cases(cases):
    """Strict counterpart of safe_float: bad input is rejected, not zeroed."""
    if cases is None or isinstance(cases, (bool, list, dict)):
        raise InvalidInputError('cases must be a non-negative number')
    try:
        value = float(str(cases).strip())
    except ValueError:
        raise InvalidInputError('cases must be a non-negative number')
    if not math.isfinite(value) or value < 0:
        raise InvalidInputError('cases must be a non-negative number')
    return value


def simulate_policy(cases, policy=None):
    cases  = parse_cases(cases)
    # non-string ids are just unknown policies
    label  = str(policy) if policy else 'baseline'
    factor = REDUCTION_FACTORS.get(label, DEFAULT_REDUCTION)

    reduced       = round_half_up(cases * (1 - factor))
    hospital_load = min(HOSPITAL_LOAD_CAP, round_half_up(reduced * HOSPITAL_LOAD_PER_CASE))
    cost_saved    = round_half_up((cases - reduced) * COST_PER_CASE_AVERTED)

    return {
        'policy':        label,
        'originalCases': int(cases) if cases.is_integer() else cases,
        'reducedCases':  reduced,
        'hospitalLoad':  hospital_load,
        'costSaved':     cost_saved,
        'timestamp':     utc_now_iso(),
    }

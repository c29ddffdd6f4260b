"""
Sentinel City: city-wide analytics.

Respiratory complaints are approximated as clinic visits + pharmacy sales.
The city baseline is the mean over all wards; each ward is then compared
against it and given two composite scores, normalised against the cohort
maximum so the busiest ward reads 100:

    spread_raw        = complaints * 0.6 + mobility  * 0.4
    vulnerability_raw = complaints * 0.4 + pollution * 0.6
"""

from sentinel_city.helpers import safe_float, round_half_up

CONCERN_DELTA_PCT = 5.0   # inclusive

SPREAD_WEIGHTS        = {'complaints': 0.6, 'mobility':  0.4}
VULNERABILITY_WEIGHTS = {'complaints': 0.4, 'pollution': 0.6}


def ward_metrics(ward, signals):
    signals = signals or {}
    # counts are never negative; clamp hand-edited documents
    def sf(key): return max(0.0, safe_float(signals.get(key), 0.0))

    complaints = sf('clinicVisits') + sf('pharmacySales')
    return {
        'wardId':                ward.get('id'),
        'wardName':              ward.get('name'),
        'respiratoryComplaints': complaints,
        'spreadRiskRaw':         complaints * SPREAD_WEIGHTS['complaints']
                                 + sf('mobility') * SPREAD_WEIGHTS['mobility'],
        'vulnerabilityRaw':      complaints * VULNERABILITY_WEIGHTS['complaints']
                                 + sf('pollution') * VULNERABILITY_WEIGHTS['pollution'],
    }


def baseline_delta_pct(complaints, baseline):
    if baseline == 0:
        return 0.0
    return (complaints - baseline) / baseline * 100


def normalise(raw, cohort_max):
    """Scale to 0-100 against the cohort max; an all-zero cohort scores 0."""
    return round_half_up(raw / (cohort_max or 1) * 100)


def compute_city_analytics(wards, signals_by_ward):
    """
    wards:           [{id, name, ...}] in stored order
    signals_by_ward: {ward_id: SignalSet}; missing wards count as all zeros
    """
    if not wards:
        return {'baseline': {'respiratoryBaseline': 0}, 'wards': []}

    signals_by_ward = signals_by_ward or {}
    metrics = [ward_metrics(w, signals_by_ward.get(w.get('id'))) for w in wards]

    city_total = sum(m['respiratoryComplaints'] for m in metrics)
    baseline   = city_total / len(metrics)

    max_spread = max([0.0] + [m['spreadRiskRaw']    for m in metrics])
    max_vuln   = max([0.0] + [m['vulnerabilityRaw'] for m in metrics])

    out = []
    for m in metrics:
        delta = baseline_delta_pct(m['respiratoryComplaints'], baseline)
        out.append({
            'wardId':                m['wardId'],
            'wardName':              m['wardName'],
            'respiratoryComplaints': m['respiratoryComplaints'],
            'baselineDeltaPct':      round_half_up(delta, 1),
            'situationOfConcern':    delta >= CONCERN_DELTA_PCT,
            'spreadRiskScore':       normalise(m['spreadRiskRaw'], max_spread),
            'vulnerabilityIndex':    normalise(m['vulnerabilityRaw'], max_vuln),
        })

    return {
        'baseline': {'respiratoryBaseline': round_half_up(baseline, 1)},
        'wards':    out,
    }

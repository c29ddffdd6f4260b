"""
Sentinel City: alert rule engine.

Maps one ward's current signals plus its per-disease counters to an alert.
Rules are evaluated in priority order; the first match wins:

1. Disease escalation:  a named disease with clinic visits > 50 or pharmacy
                        sales > 60 overrides every generic heuristic.
2. Environmental spike: PM2.5 + cold inversion driving clinic visits.
3. Pharmacy surge:      OTC sales alone.
4. Default:             nothing anomalous.

Pure and total: absent or non-numeric inputs count as 0.
"""

from sentinel_city.helpers import safe_float

# Disease rule thresholds
DISEASE_QUALIFY_VISITS = 50
DISEASE_QUALIFY_SALES  = 60
DISEASE_HIGH_VISITS    = 70
DISEASE_HIGH_SALES     = 80

CONFIDENCE = {
    'disease_high':   88,
    'disease_medium': 65,
    'environmental':  85,
    'pharmacy':       72,
    'normal':         20,
}


def _field(record, key):
    if not isinstance(record, dict):
        return 0.0
    return safe_float(record.get(key), 0.0)


def rank_diseases(disease_data):
    """
    Return the qualifying diseases, strongest first.
    Each item: {'disease', 'visits', 'sales', 'risk'}.
    """
    candidates = []
    for disease, data in (disease_data or {}).items():
        visits = _field(data, 'clinicVisits')
        sales  = _field(data, 'pharmacySales')
        if visits > DISEASE_QUALIFY_VISITS or sales > DISEASE_QUALIFY_SALES:
            high = visits > DISEASE_HIGH_VISITS or sales > DISEASE_HIGH_SALES
            candidates.append({
                'disease': disease,
                'visits':  visits,
                'sales':   sales,
                'risk':    'high' if high else 'medium',
            })

    # 'high' tier first, then larger visits + sales; sort is stable for ties
    candidates.sort(key=lambda c: (c['risk'] != 'high', -(c['visits'] + c['sales'])))
    return candidates


def generate_alert(signals, disease_data=None):
    """
    signals:      {clinicVisits, pharmacySales, pollution, temperature, mobility}
    disease_data: {disease_name: {clinicVisits, pharmacySales, ...}}
    Returns {level, reason, confidence[, disease]}.
    """
    ranked = rank_diseases(disease_data)
    if ranked:
        top = ranked[0]
        return {
            'level':      top['risk'],
            'reason':     f"{top['disease']} is spreading fast in this area. Please be careful.",
            'confidence': CONFIDENCE['disease_high'] if top['risk'] == 'high'
                          else CONFIDENCE['disease_medium'],
            'disease':    top['disease'],
        }

    clinic_visits  = _field(signals, 'clinicVisits')
    pharmacy_sales = _field(signals, 'pharmacySales')
    pollution      = _field(signals, 'pollution')
    temperature    = _field(signals, 'temperature')

    if pollution > 80 and clinic_visits > 70 and temperature < 20:
        return {
            'level':      'high',
            'reason':     'Respiratory spike due to PM2.5 + cold inversion',
            'confidence': CONFIDENCE['environmental'],
        }

    if pharmacy_sales > 80:
        return {
            'level':      'medium',
            'reason':     'OTC surge indicates viral outbreak',
            'confidence': CONFIDENCE['pharmacy'],
        }

    return {
        'level':      'normal',
        'reason':     'No significant anomalies detected',
        'confidence': CONFIDENCE['normal'],
    }

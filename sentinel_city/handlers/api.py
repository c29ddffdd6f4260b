"""
Sentinel City: REST API Lambda
Triggered by API Gateway (REST, proxy integration) for every dashboard route.

Routes:
  GET  /                       health check
  GET  /wards                  list wards
  POST /wards                  register a ward {name, lat, lng}
  GET  /signals/{wardId}       current signals + recomputed alert
  POST /signals/{wardId}       replace signals, return alert
  GET  /disease-data/{wardId}  disease counters for a ward
  POST /disease-data/{wardId}  upsert one disease {disease, clinicVisits, pharmacySales}
  GET  /all-alerts             alert per ward for the operational map
  GET  /analytics/overview     city baseline + per-ward spread/vulnerability
  POST /simulate-policy        {cases, policy} → projected outcome
  GET  /simulation-history     stored simulation runs
  GET  /ai-alerts/{wardId}     Bedrock outbreak narrative (fallback on failure)
  GET  /environment/{wardId}   latest ingested weather/AQI, live lookup if none
  GET  /geocode?q=...          place name → lat/lng

Alerts are always recomputed from the stored signals and disease counters,
never read back from storage.
"""

import json
import re
from urllib.parse import unquote

from sentinel_city import environment, narrative
from sentinel_city.alerts import generate_alert
from sentinel_city.analytics import compute_city_analytics
from sentinel_city.errors import InvalidInputError, NotFoundError, SentinelError
from sentinel_city.helpers import utc_now_iso
from sentinel_city.policy import simulate_policy
from sentinel_city.store import store_from_env

CORS_HEADERS = {
    'Content-Type':                 'application/json',
    'Access-Control-Allow-Origin':  '*',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type',
}

# Module-level cache, survives warm Lambda invocations
_store = None


def get_store():
    global _store
    if _store is None:
        print('Cold start: opening store')
        _store = store_from_env()
    return _store


def ok(body, status=200):
    return {'statusCode': status, 'headers': CORS_HEADERS,
            'body': json.dumps(body)}

def err(code, msg):
    return {'statusCode': code, 'headers': CORS_HEADERS,
            'body': json.dumps({'error': msg})}


def parse_body(event):
    try:
        body = json.loads(event.get('body') or '{}')
    except ValueError as e:
        raise InvalidInputError(f'Invalid request body: {e}')
    if not isinstance(body, dict):
        raise InvalidInputError('Request body must be a JSON object')
    return body


# ── Routes ────────────────────────────────────────────────────────────

def health(event):
    return ok({'status': 'Sentinel City backend running'})


def list_wards(event):
    return ok(get_store().list_wards())


def create_ward(event):
    body = parse_body(event)
    ward = get_store().add_ward(body.get('name'), body.get('lat'), body.get('lng'))
    return ok(ward, status=201)


def get_signals(event, ward_id):
    store        = get_store()
    signals      = store.get_signal_set(ward_id)
    disease_data = store.get_disease_data(ward_id)
    return ok({
        'wardId':      ward_id,
        'signals':     signals,
        'alert':       generate_alert(signals, disease_data),
        'diseaseData': disease_data,
    })


def post_signals(event, ward_id):
    body         = parse_body(event)
    store        = get_store()
    signals      = store.put_signal_set(ward_id, body)
    disease_data = store.get_disease_data(ward_id)
    alert        = generate_alert(signals, disease_data)
    print(f'Signals updated for {ward_id}: {signals} → {alert["level"]}')
    return ok({
        'wardId':      ward_id,
        'signals':     signals,
        'alert':       alert,
        'diseaseData': disease_data,
    }, status=201)


def get_disease_data(event, ward_id):
    return ok({'wardId': ward_id, 'diseases': get_store().get_disease_data(ward_id)})


def post_disease_data(event, ward_id):
    body  = parse_body(event)
    store = get_store()
    name, entry, diseases = store.upsert_disease_entry(
        ward_id,
        body.get('disease'),
        body.get('clinicVisits'),
        body.get('pharmacySales'),
    )
    alert = generate_alert(store.get_signal_set(ward_id), diseases)
    print(f'Disease data updated for {ward_id}/{name} → {alert["level"]}')
    return ok({'wardId': ward_id, 'disease': name, 'data': entry, 'alert': alert})


def all_alerts(event):
    store    = get_store()
    wards    = store.list_wards()
    signals  = store.signals_by_ward()
    diseases = store.disease_data_by_ward()

    out = []
    for ward in wards:
        disease_data = diseases.get(ward['id']) or {}
        out.append({
            'wardId':      ward['id'],
            'wardName':    ward.get('name'),
            'lat':         ward.get('lat'),
            'lng':         ward.get('lng'),
            'alert':       generate_alert(signals.get(ward['id']) or {}, disease_data),
            'diseaseData': disease_data,
        })
    return ok(out)


def analytics_overview(event):
    store = get_store()
    return ok(compute_city_analytics(store.list_wards(), store.signals_by_ward()))


def run_simulation(event):
    body = parse_body(event)
    return ok(simulate_policy(body.get('cases'), body.get('policy')))


def simulation_history(event):
    return ok(get_store().simulation_history())


def ai_alert(event, ward_id):
    store        = get_store()
    ward         = store.get_ward(ward_id)
    signals      = store.get_signal_set(ward_id)
    disease_data = store.get_disease_data(ward_id)
    return ok(narrative.generate_narrative(ward.get('name', ward_id), signals, disease_data))


def ward_environment(event, ward_id):
    store   = get_store()
    ward    = store.get_ward(ward_id)
    reading = store.get_environment(ward_id)
    if reading is None:
        reading = environment.fetch_environment(ward.get('lat'), ward.get('lng'))
        reading['fetchedAt'] = utc_now_iso()
    return ok({'wardId': ward_id, **reading})


def geocode(event):
    query = ((event.get('queryStringParameters') or {}).get('q') or '').strip()
    if not query:
        raise InvalidInputError('q is required')
    place = environment.geocode_place(query)
    if place is None:
        raise NotFoundError(f'No location found for "{query}"')
    return ok(place)


WARD_ID = r'(?P<ward_id>[^/]+)'

ROUTES = [
    ('GET',  r'/',                          health),
    ('GET',  r'/wards',                     list_wards),
    ('POST', r'/wards',                     create_ward),
    ('GET',  rf'/signals/{WARD_ID}',        get_signals),
    ('POST', rf'/signals/{WARD_ID}',        post_signals),
    ('GET',  rf'/disease-data/{WARD_ID}',   get_disease_data),
    ('POST', rf'/disease-data/{WARD_ID}',   post_disease_data),
    ('GET',  r'/all-alerts',                all_alerts),
    ('GET',  r'/analytics/overview',        analytics_overview),
    ('POST', r'/simulate-policy',           run_simulation),
    ('GET',  r'/simulation-history',        simulation_history),
    ('GET',  rf'/ai-alerts/{WARD_ID}',      ai_alert),
    ('GET',  rf'/environment/{WARD_ID}',    ward_environment),
    ('GET',  r'/geocode',                   geocode),
]
ROUTES = [(m, re.compile(p + r'/?$'), fn) for m, p, fn in ROUTES]


def resolve(method, path):
    for route_method, pattern, fn in ROUTES:
        if route_method != method:
            continue
        match = pattern.match(path)
        if match:
            params = {k: unquote(v) for k, v in match.groupdict().items()}
            return fn, params
    return None, {}


# ── Main handler ──────────────────────────────────────────────────────

def handler(event, context):
    method = (event.get('httpMethod') or 'GET').upper()
    path   = event.get('path') or '/'

    # CORS preflight
    if method == 'OPTIONS':
        return {'statusCode': 200, 'headers': CORS_HEADERS, 'body': ''}

    fn, params = resolve(method, path)
    if fn is None:
        return err(404, 'Not found')

    try:
        return fn(event, **params)
    except SentinelError as e:
        return err(e.status_code, str(e))
    except Exception as e:
        print(f'❌ {method} {path} failed: {e}')
        return err(500, f'Internal error: {e}')

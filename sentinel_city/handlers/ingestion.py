"""
Sentinel City: Environment Ingestion Lambda
Triggered by EventBridge every 6 hours.
Fetches live temperature + PM2.5 for every registered ward and stores one
EnvironmentReading per ward, used to prefill the admin signal form.
Readings never touch the ward's SignalSet: signals only change when an
administrator submits all five values together.
"""


from sentinel_city.environment import fetch_environment
from sentinel_city.handlers.api import get_store
from sentinel_city.helpers import safe_float, utc_now_iso

# City centre, used for wards registered without usable coordinates
CITY_LAT = 19.0760
CITY_LNG = 72.8777


def ward_coordinates(ward):
    lat = safe_float(ward.get('lat'), None)
    lng = safe_float(ward.get('lng'), None)
    if lat is None or lng is None:
        return CITY_LAT, CITY_LNG
    return lat, lng


def handler(event, context):
    """
    EventBridge triggers this every 6 hours.
    event: {} (scheduled event, payload not used)
    """
    print('Ingestion triggered: refreshing ward environment readings')

    store = get_store()

    try:
        wards = store.list_wards()
        print(f'✅ Ward list loaded — {len(wards)} wards')
    except Exception as e:
        print(f'❌ Failed to load ward list: {e}')
        return {'statusCode': 500, 'body': f'Ward list load failed: {e}'}

    success_count = 0
    error_count   = 0

    for ward in wards:
        ward_id = ward.get('id')
        if not ward_id:
            continue

        try:
            lat, lng = ward_coordinates(ward)
            reading  = fetch_environment(lat, lng)
            reading['fetchedAt'] = utc_now_iso()
            store.put_environment(ward_id, reading)
            success_count += 1
        except Exception as e:
            print(f'⚠️  Error processing ward {ward_id}: {e}')
            error_count += 1

    summary = {
        'statusCode':    200,
        'run_at':        utc_now_iso(),
        'wards_written': success_count,
        'wards_failed':  error_count,
    }
    print(f'✅ Ingestion complete: {success_count} wards written, {error_count} failed')
    return summary

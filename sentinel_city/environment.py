"""
Sentinel City: environment lookups.

Free, keyless providers used to prefill the admin signal form:
- Open-Meteo forecast API     → current temperature (°C)
- Open-Meteo air-quality API  → PM2.5, mapped onto the dashboard's 0-150 AQI scale
- OpenStreetMap Nominatim     → place name → lat/lng

Every lookup has a timeout and a fixed fallback; none of them raise.
"""

import json
import os
import urllib.parse
import urllib.request

from sentinel_city.helpers import safe_float, round_half_up

HTTP_TIMEOUT = int(os.environ.get('HTTP_TIMEOUT_SECONDS', '10'))
USER_AGENT   = 'Sentinel-City/1.0'

FALLBACK_POLLUTION   = 50
FALLBACK_TEMPERATURE = 20

# (upper PM2.5 bound µg/m³, AQI at lower bound, AQI at upper bound); simplified US EPA bands
PM25_BANDS = [
    (12.0,  0,   50),
    (35.4,  50,  100),
    (55.4,  100, 150),
]
AQI_CAP = 150


# ── Helpers ───────────────────────────────────────────────────────────

def fetch_json(url, headers=None):
    """Simple HTTP GET returning parsed JSON."""
    req = urllib.request.Request(url, headers={
        'Accept': 'application/json',
        'User-Agent': USER_AGENT,
        **(headers or {}),
    })
    with urllib.request.urlopen(req, timeout=HTTP_TIMEOUT) as r:
        return json.loads(r.read().decode())


def pm25_to_aqi(pm25):
    """Map a PM2.5 concentration onto the dashboard's 0-150 pollution scale."""
    lower = 0.0
    for upper, aqi_lo, aqi_hi in PM25_BANDS:
        if pm25 <= upper:
            return round_half_up(aqi_lo + (pm25 - lower) / (upper - lower) * (aqi_hi - aqi_lo))
        lower = upper
    return AQI_CAP


# ── Lookups ───────────────────────────────────────────────────────────

def fetch_temperature(lat, lng):
    url = (
        'https://api.open-meteo.com/v1/forecast'
        f'?latitude={lat}&longitude={lng}'
        '&current=temperature_2m&timezone=auto'
    )
    try:
        data = fetch_json(url)
        temp = (data.get('current') or {}).get('temperature_2m')
        if temp is None:
            print(f'⚠️  No temperature for ({lat},{lng}) — using fallback')
            return FALLBACK_TEMPERATURE
        return round_half_up(float(temp))
    except Exception as e:
        print(f'⚠️  Temperature fetch failed for ({lat},{lng}): {e} — using fallback')
        return FALLBACK_TEMPERATURE


def fetch_pollution(lat, lng):
    url = (
        'https://air-quality-api.open-meteo.com/v1/air-quality'
        f'?latitude={lat}&longitude={lng}'
        '&current=pm2_5'
    )
    try:
        data = fetch_json(url)
        pm25 = safe_float((data.get('current') or {}).get('pm2_5'), 0.0)
        if pm25 <= 0:
            print(f'⚠️  No PM2.5 for ({lat},{lng}) — using fallback')
            return FALLBACK_POLLUTION
        return pm25_to_aqi(pm25)
    except Exception as e:
        print(f'⚠️  AQI fetch failed for ({lat},{lng}): {e} — using fallback')
        return FALLBACK_POLLUTION


def fetch_environment(lat, lng):
    """Returns {'pollution', 'temperature', 'source'} for a coordinate."""
    pollution   = fetch_pollution(lat, lng)
    temperature = fetch_temperature(lat, lng)
    return {
        'pollution':   pollution,
        'temperature': temperature,
        'source':      'open-meteo',
    }


def geocode_place(query):
    """
    Free-text place → {'lat', 'lng', 'displayName'}.
    Returns None for blank queries, no match or any provider failure.
    """
    if not query or not str(query).strip():
        return None
    query = str(query).strip()
    url = (
        'https://nominatim.openstreetmap.org/search'
        f'?format=json&limit=1&q={urllib.parse.quote(query)}'
    )
    try:
        results = fetch_json(url)
    except Exception as e:
        print(f'⚠️  Geocoding failed for {query!r}: {e}')
        return None

    if not isinstance(results, list) or not results:
        return None
    top = results[0]
    lat = safe_float(top.get('lat'), None)
    lng = safe_float(top.get('lon'), None)
    if lat is None or lng is None:
        return None
    return {'lat': lat, 'lng': lng, 'displayName': top.get('display_name') or query}

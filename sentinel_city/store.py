"""
Sentinel City: ward/signal store.

The whole dataset is one JSON document:

    {
      "wards":             [{id, name, lat, lng}],
      "signals":           {ward_id: {"signals": SignalSet}},
      "diseaseData":       {ward_id: {disease: {clinicVisits, pharmacySales, updatedAt}}},
      "environment":       {ward_id: {pollution, temperature, source, fetchedAt}},
      "simulationHistory": [...],
      "users":             [...]
    }

It lives either on local disk (dev / tests) or in S3 (deployed Lambdas).
Every write is a read-modify-write of the full document; WardStore
serialises those per process. Alerts are never stored, callers derive
them from get_signal_set() + get_disease_data().
"""

import copy
import json
import os
import threading
from pathlib import Path

import boto3
from botocore.exceptions import ClientError

from sentinel_city.errors import InvalidInputError, NotFoundError
from sentinel_city.helpers import generate_id, safe_float, utc_now_iso

# ── Config from Lambda environment variables ──────────────────────────
AWS_REGION = os.environ.get('AWS_REGION_NAME', 'ap-south-1')
DB_BUCKET  = os.environ.get('DB_BUCKET', '')
DB_KEY     = os.environ.get('DB_KEY',    'sentinel/db.json')
DB_PATH    = os.environ.get('DB_PATH',   'db.json')

EMPTY_DOCUMENT = {
    'wards':             [],
    'signals':           {},
    'diseaseData':       {},
    'environment':       {},
    'simulationHistory': [],
    'users':             [],
}

SIGNAL_FIELDS = ['clinicVisits', 'pharmacySales', 'pollution', 'temperature', 'mobility']
# temperature is the only signal allowed below zero
NON_NEGATIVE_FIELDS = ['clinicVisits', 'pharmacySales', 'pollution', 'mobility']


def empty_document():
    return copy.deepcopy(EMPTY_DOCUMENT)


def zero_signals():
    signals = {f: 0 for f in SIGNAL_FIELDS}
    signals['updatedAt'] = None
    return signals


def normalise_disease_name(name):
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError('Disease name is required')
    return name.strip().lower()


def _parse_document(raw, source):
    try:
        doc = json.loads(raw or '{}')
    except ValueError as e:
        print(f'⚠️  Unreadable store document at {source}: {e} — starting empty')
        return empty_document()
    if not isinstance(doc, dict):
        print(f'⚠️  Store document at {source} is not an object — starting empty')
        return empty_document()
    for key, default in EMPTY_DOCUMENT.items():
        doc.setdefault(key, copy.deepcopy(default))
    return doc


# ── Backends ──────────────────────────────────────────────────────────

class FileBackend:
    """JSON document on local disk. Missing or corrupt file reads as empty."""

    def __init__(self, path=DB_PATH):
        self.path = Path(path)

    def read(self):
        if not self.path.exists():
            return empty_document()
        return _parse_document(self.path.read_text(encoding='utf-8'), self.path)

    def write(self, doc):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + '.tmp')
        tmp.write_text(json.dumps(doc, indent=2), encoding='utf-8')
        tmp.replace(self.path)


class S3Backend:
    """JSON document stored as a single S3 object."""

    def __init__(self, bucket=DB_BUCKET, key=DB_KEY, client=None):
        self.bucket = bucket
        self.key    = key
        self.s3     = client or boto3.client('s3', region_name=AWS_REGION)

    def read(self):
        try:
            resp = self.s3.get_object(Bucket=self.bucket, Key=self.key)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('NoSuchKey', '404'):
                print(f'Store object s3://{self.bucket}/{self.key} not found — starting empty')
                return empty_document()
            raise
        content = resp['Body'].read().decode('utf-8-sig')
        return _parse_document(content, f's3://{self.bucket}/{self.key}')

    def write(self, doc):
        self.s3.put_object(
            Bucket=self.bucket,
            Key=self.key,
            Body=json.dumps(doc, indent=2).encode('utf-8'),
            ContentType='application/json',
        )


# ── Repository ────────────────────────────────────────────────────────

class WardStore:

    def __init__(self, backend):
        self.backend = backend
        self._lock   = threading.Lock()

    def _read(self):
        return self.backend.read()

    def _mutate(self, change):
        """Apply change(doc) under the lock and persist the result."""
        with self._lock:
            doc    = self._read()
            result = change(doc)
            self.backend.write(doc)
            return result

    @staticmethod
    def _find_ward(doc, ward_id):
        for ward in doc['wards']:
            if ward.get('id') == ward_id:
                return ward
        raise NotFoundError('Ward not found')

    # wards

    def list_wards(self):
        return self._read()['wards']

    def get_ward(self, ward_id):
        return self._find_ward(self._read(), ward_id)

    def add_ward(self, name, lat, lng):
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError('name, lat and lng are required')
        if lat is None or lng is None or lat == '' or lng == '':
            raise InvalidInputError('name, lat and lng are required')
        lat_f = safe_float(lat, None)
        lng_f = safe_float(lng, None)
        if lat_f is None or lng_f is None:
            raise InvalidInputError('lat and lng must be numbers')

        ward = {'id': generate_id(), 'name': name, 'lat': lat_f, 'lng': lng_f}

        def change(doc):
            doc['wards'].append(ward)
            return ward

        created = self._mutate(change)
        print(f'Ward created: {created["id"]} ({created["name"]})')
        return created

    # signals

    def get_signal_set(self, ward_id):
        doc = self._read()
        self._find_ward(doc, ward_id)
        entry = doc['signals'].get(ward_id)
        signals = entry.get('signals') if isinstance(entry, dict) else None
        return signals or zero_signals()

    def signals_by_ward(self):
        doc = self._read()
        return {
            wid: (entry.get('signals') if isinstance(entry, dict) else None) or {}
            for wid, entry in doc['signals'].items()
        }

    def put_signal_set(self, ward_id, values):
        """Replace the ward's SignalSet with all five fields from `values`."""
        values  = values or {}
        signals = {f: safe_float(values.get(f), 0.0) for f in SIGNAL_FIELDS}
        negative = [f for f in NON_NEGATIVE_FIELDS if signals[f] < 0]
        if negative:
            raise InvalidInputError(f'{", ".join(negative)} must be non-negative')
        signals['updatedAt'] = utc_now_iso()

        def change(doc):
            self._find_ward(doc, ward_id)
            doc['signals'][ward_id] = {'signals': signals}
            return signals

        return self._mutate(change)

    # disease counters

    def get_disease_data(self, ward_id):
        doc = self._read()
        self._find_ward(doc, ward_id)
        return doc['diseaseData'].get(ward_id) or {}

    def disease_data_by_ward(self):
        return self._read()['diseaseData']

    def upsert_disease_entry(self, ward_id, disease, clinic_visits=0, pharmacy_sales=0):
        """Overwrite one disease's counters; other diseases in the ward are untouched."""
        name  = normalise_disease_name(disease)
        entry = {
            'clinicVisits':  safe_float(clinic_visits, 0.0),
            'pharmacySales': safe_float(pharmacy_sales, 0.0),
        }
        if entry['clinicVisits'] < 0 or entry['pharmacySales'] < 0:
            raise InvalidInputError('clinicVisits and pharmacySales must be non-negative')
        entry['updatedAt'] = utc_now_iso()

        def change(doc):
            self._find_ward(doc, ward_id)
            diseases = doc['diseaseData'].setdefault(ward_id, {})
            diseases[name] = entry
            return name, entry, dict(diseases)

        return self._mutate(change)

    # environment readings

    def get_environment(self, ward_id):
        doc = self._read()
        self._find_ward(doc, ward_id)
        return doc['environment'].get(ward_id)

    def put_environment(self, ward_id, reading):
        def change(doc):
            self._find_ward(doc, ward_id)
            doc['environment'][ward_id] = reading
            return reading

        return self._mutate(change)

    # simulations

    def simulation_history(self):
        return self._read()['simulationHistory']


def store_from_env():
    """S3 when DB_BUCKET is configured, local JSON file otherwise."""
    if DB_BUCKET:
        print(f'Store: s3://{DB_BUCKET}/{DB_KEY}')
        return WardStore(S3Backend(DB_BUCKET, DB_KEY))
    print(f'Store: {DB_PATH}')
    return WardStore(FileBackend(DB_PATH))

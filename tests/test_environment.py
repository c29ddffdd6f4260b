"""Exercise the weather/AQI/geocoding lookups with a stubbed HTTP layer."""

from __future__ import annotations

import pytest

from sentinel_city import environment


def _stub_fetch(monkeypatch, responses):
    """Route fetch_json by URL prefix; an Exception value is raised."""

    seen = []

    def fake_fetch(url, headers=None):
        seen.append(url)
        for prefix, value in responses.items():
            if url.startswith(prefix):
                if isinstance(value, Exception):
                    raise value
                return value
        raise AssertionError(f"unexpected url {url}")

    monkeypatch.setattr(environment, "fetch_json", fake_fetch)
    return seen


@pytest.mark.parametrize(
    "pm25, aqi",
    [(6, 25), (12, 50), (23.7, 75), (35.4, 100), (45.4, 125), (55.4, 150), (300, 150)],
)
def test_pm25_to_aqi(pm25, aqi) -> None:
    assert environment.pm25_to_aqi(pm25) == aqi


def test_fetch_environment_uses_live_values(monkeypatch) -> None:
    seen = _stub_fetch(monkeypatch, {
        "https://api.open-meteo.com": {"current": {"temperature_2m": 17.6}},
        "https://air-quality-api.open-meteo.com": {"current": {"pm2_5": 12}},
    })
    reading = environment.fetch_environment(19.07, 72.87)
    assert reading == {"pollution": 50, "temperature": 18, "source": "open-meteo"}
    assert all("latitude=19.07" in url for url in seen)


def test_fetch_environment_falls_back_on_errors(monkeypatch) -> None:
    _stub_fetch(monkeypatch, {
        "https://api.open-meteo.com": OSError("network down"),
        "https://air-quality-api.open-meteo.com": {"current": {}},
    })
    reading = environment.fetch_environment(0, 0)
    assert reading["pollution"] == environment.FALLBACK_POLLUTION == 50
    assert reading["temperature"] == environment.FALLBACK_TEMPERATURE == 20


def test_geocode_place(monkeypatch) -> None:
    seen = _stub_fetch(monkeypatch, {
        "https://nominatim.openstreetmap.org": [
            {"lat": "18.9067", "lon": "72.8147", "display_name": "Colaba, Mumbai"},
        ],
    })
    place = environment.geocode_place("  Colaba Mumbai ")
    assert place == {"lat": 18.9067, "lng": 72.8147, "displayName": "Colaba, Mumbai"}
    assert "q=Colaba%20Mumbai" in seen[0]


@pytest.mark.parametrize("reply", [[], {"error": "x"}, [{"lat": "?", "lon": "1"}], OSError("boom")])
def test_geocode_place_returns_none_when_unresolved(monkeypatch, reply) -> None:
    _stub_fetch(monkeypatch, {"https://nominatim.openstreetmap.org": reply})
    assert environment.geocode_place("Atlantis") is None


def test_geocode_blank_query_skips_provider(monkeypatch) -> None:
    seen = _stub_fetch(monkeypatch, {})
    assert environment.geocode_place("   ") is None
    assert seen == []

"""Tests for the JPL SBDB client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from neorisk.data.sbdb import MAX_QUERY_LIMIT, SBDBClient


APOPHIS_PAYLOAD = {
    "object": {"fullname": "99942 Apophis (2004 MN4)", "des": "99942", "pha": True, "neo": True},
    "orbit": {
        "epoch": "2461000.5",
        "elements": [
            {"name": "e", "value": ".1911953048308016"},
            {"name": "a", "value": ".9223803919811993"},
            {"name": "q", "value": ".7460263780901784"},
            {"name": "i", "value": "3.336680137523195"},
            {"name": "om", "value": "203.9580241507728"},
            {"name": "w", "value": "126.6728325163991"},
            {"name": "ma", "value": "175.7159866315009"},
        ],
    },
    "phys_par": [
        {"name": "H", "value": "19.09"},
        {"name": "diameter", "value": ".34"},
    ],
}

CATALOG_FIELDS = ["spkid", "full_name", "neo", "pha", "H", "diameter", "a", "e", "i", "om", "w", "ma", "epoch"]

CATALOG_PAYLOAD = {
    "fields": CATALOG_FIELDS,
    "data": [
        ["20099942", "  99942 Apophis (2004 MN4)", "Y", "Y", "19.09", ".34",
         ".9224", ".1912", "3.34", "203.96", "126.67", "175.72", "2461000.5"],
        ["3542519", "", "Y", "N", "24.1", None,
         "1.31", ".41", None, None, None, None, "2460800.5"],
        # missing semi-major axis
        ["3000001", "  (2000 AA)", "Y", "N", "22.0", None,
         None, ".2", "1.0", "2.0", "3.0", "4.0", "2460800.5"],
        # hyperbolic
        ["3000002", "  (2000 AB)", "Y", "N", "22.0", None,
         "1.1", "1.2", "1.0", "2.0", "3.0", "4.0", "2460800.5"],
    ],
}


def _make_response(status_code: int = 200, payload: dict | None = None) -> MagicMock:
    """Helper to create a mock response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    resp.raise_for_status = MagicMock()
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(response=resp)
    return resp


def test_client_init():
    client = SBDBClient()
    assert client.timeout == 10.0
    assert client.catalog_timeout == 30.0
    assert isinstance(client._session, requests.Session)


def test_fetch_asteroid_success():
    client = SBDBClient()
    with patch.object(client._session, "get", return_value=_make_response(200, APOPHIS_PAYLOAD)) as get:
        asteroid = client.fetch_asteroid("99942")

    assert asteroid.name == "99942 Apophis (2004 MN4)"
    assert asteroid.is_hazardous is True
    assert asteroid.diameter_km == pytest.approx(0.34)
    assert asteroid.absolute_magnitude == pytest.approx(19.09)

    el = asteroid.orbital_elements
    assert el.semi_major_axis_au == pytest.approx(0.9223803919811993)
    assert el.eccentricity == pytest.approx(0.1911953048308016)
    assert el.longitude_asc_node_deg == pytest.approx(203.9580241507728)
    assert el.mean_anomaly_deg == pytest.approx(175.7159866315009)
    assert el.epoch_jd == 2461000.5

    args, kwargs = get.call_args
    assert args[0] == SBDBClient.OBJECT_URL
    assert kwargs["params"]["sstr"] == "99942"
    assert kwargs["params"]["phys-par"] == "1"
    assert kwargs["timeout"] == 10.0


def test_fetch_asteroid_without_physical_data():
    payload = dict(APOPHIS_PAYLOAD, phys_par=None, object={"des": "2004 MN4", "pha": False})
    client = SBDBClient()
    with patch.object(client._session, "get", return_value=_make_response(200, payload)):
        asteroid = client.fetch_asteroid("2004 MN4")
    assert asteroid.name == "2004 MN4"
    assert asteroid.is_hazardous is False
    assert asteroid.diameter_km is None
    assert asteroid.absolute_magnitude is None


def test_fetch_asteroid_no_orbit():
    client = SBDBClient()
    payload = {"object": {"des": "nope"}}
    with patch.object(client._session, "get", return_value=_make_response(200, payload)):
        with pytest.raises(ValueError, match="No orbital data found for nope"):
            client.fetch_asteroid("nope")


def test_fetch_asteroid_http_error():
    client = SBDBClient()
    with patch.object(client._session, "get", return_value=_make_response(503)):
        with pytest.raises(requests.HTTPError):
            client.fetch_asteroid("99942")


def test_fetch_catalog_skips_bad_rows():
    client = SBDBClient()
    with patch.object(client._session, "get", return_value=_make_response(200, CATALOG_PAYLOAD)):
        asteroids = client.fetch_neo_catalog()

    assert len(asteroids) == 2
    apophis, unnamed = asteroids
    assert apophis.name == "99942 Apophis (2004 MN4)"
    assert apophis.is_hazardous is True
    assert apophis.diameter_km == pytest.approx(0.34)

    assert unnamed.name == "SPK3542519"
    assert unnamed.is_hazardous is False
    assert unnamed.diameter_km is None
    assert unnamed.absolute_magnitude == pytest.approx(24.1)
    assert unnamed.orbital_elements.inclination_deg == 0.0
    assert unnamed.orbital_elements.mean_anomaly_deg == 0.0


def test_fetch_catalog_params():
    client = SBDBClient()
    with patch.object(client._session, "get", return_value=_make_response(200, CATALOG_PAYLOAD)) as get:
        client.fetch_neo_catalog(limit=50_000, pha_only=True)

    args, kwargs = get.call_args
    assert args[0] == SBDBClient.QUERY_URL
    params = kwargs["params"]
    assert params["sb-group"] == "pha"
    assert params["sb-kind"] == "a"
    assert params["limit"] == MAX_QUERY_LIMIT
    assert params["fields"].split(",") == CATALOG_FIELDS
    assert kwargs["timeout"] == 30.0


def test_fetch_catalog_default_group():
    client = SBDBClient()
    with patch.object(client._session, "get", return_value=_make_response(200, CATALOG_PAYLOAD)) as get:
        client.fetch_neo_catalog(limit=10)
    params = get.call_args.kwargs["params"]
    assert params["sb-group"] == "neo"
    assert params["limit"] == 10


def test_fetch_catalog_empty():
    client = SBDBClient()
    payload = {"signature": {"version": "1.0"}, "count": 0}
    with patch.object(client._session, "get", return_value=_make_response(200, payload)):
        assert client.fetch_neo_catalog() == []


def test_fetch_catalog_http_error():
    client = SBDBClient()
    with patch.object(client._session, "get", return_value=_make_response(500)):
        with pytest.raises(requests.HTTPError):
            client.fetch_neo_catalog()

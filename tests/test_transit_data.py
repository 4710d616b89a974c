"""Tests for transit data sources."""

import json
from pathlib import Path

import pytest
import requests

from pararouting.exceptions import DataUnavailableError
from pararouting.graph.graph_builder import build_graph_from_source
from pararouting.models.graph_models import NodeKind, VehicleType
from pararouting.sources.transit_data import (
    CsvTransitDataSource, InMemoryTransitDataSource, RestTransitDataSource, source_from_config,
)


@pytest.fixture
def csv_dir(tmp_path: Path) -> Path:
    (tmp_path / "stops.csv").write_text(
        "stop_id,stop_name,stop_lat,stop_lon,is_terminal,vehicle_types\n"
        "A,Terminal A,14.600,120.98,True,jeepney\n"
        "S1,Stop 1,14.605,120.98,False,\n"
        "B,Terminal B,14.610,120.98,True,jeepney;bus\n"
    )
    (tmp_path / "routes.csv").write_text(
        "route_id,vehicle_type,base_fare,fare_per_km\n"
        "J1,jeepney,13,1.8\n"
    )
    (tmp_path / "route_stops.csv").write_text(
        "route_id,stop_sequence,stop_id\n"
        "J1,2,S1\n"
        "J1,1,A\n"
        "J1,3,B\n"
    )
    (tmp_path / "zones.geojson").write_text(json.dumps({
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"id": "Z1", "name": "Poblacion", "base_fare": 15, "per_km": 2.5},
                "geometry": {"type": "Polygon", "coordinates": [[
                    [120.97, 14.52], [121.03, 14.52], [121.03, 14.58], [120.97, 14.58], [120.97, 14.52],
                ]]},
            },
            {
                "type": "Feature",
                "properties": {"id": "P", "name": "Pin"},
                "geometry": {"type": "Point", "coordinates": [121.0, 14.5]},
            },
        ],
    }))
    return tmp_path


def test_csv_stops(csv_dir):
    stops = CsvTransitDataSource(str(csv_dir)).load_stops()

    assert [s['id'] for s in stops] == ['A', 'S1', 'B']
    assert stops[0]['name'] == 'Terminal A'
    assert stops[0]['lat'] == 14.6
    assert stops[1]['vehicle_types'] is None


def test_csv_routes_are_ordered_by_sequence(csv_dir):
    routes = CsvTransitDataSource(str(csv_dir)).load_routes()

    assert len(routes) == 1
    assert routes[0]['id'] == 'J1'
    assert routes[0]['ordered_stops'] == ['A', 'S1', 'B']


def test_csv_zones_skip_non_polygons(csv_dir):
    zones = CsvTransitDataSource(str(csv_dir)).load_zones()

    assert [z['id'] for z in zones] == ['Z1']
    assert zones[0]['polygon'][0] == (14.52, 120.97)


def test_csv_graph(csv_dir):
    graph = build_graph_from_source(CsvTransitDataSource(str(csv_dir)))

    assert list(graph.nodes) == ['A', 'S1', 'B']
    assert graph.nodes['A'].kind is NodeKind.TERMINAL
    assert graph.nodes['S1'].vehicle_types == frozenset({VehicleType.JEEPNEY})
    assert [(e.from_id, e.to_id) for e in graph.edges] == [('A', 'S1'), ('S1', 'B')]
    assert graph.zones[0].contains(14.55, 121.0)


def test_missing_csv_files_read_as_empty(tmp_path):
    source = CsvTransitDataSource(str(tmp_path))

    assert source.load_stops() == []
    assert source.load_routes() == []
    assert source.load_zones() == []


def test_unreadable_zones_file(tmp_path):
    (tmp_path / "zones.geojson").write_text("{not json")

    with pytest.raises(DataUnavailableError):
        CsvTransitDataSource(str(tmp_path)).load_zones()


class FakeResponse:

    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:

    def __init__(self, tables, status=200):
        self.tables = tables
        self.status = status
        self.requests = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append((url, params, headers, timeout))
        return FakeResponse(self.tables.get(url.rsplit('/', 1)[-1], []), self.status)


def test_rest_source():
    session = FakeSession({
        'stops': [{'id': 'A', 'lat': 14.6, 'lng': 121.0, 'name': 'A', 'isTerminal': True,
                   'vehicleTypes': ['jeepney']}],
        'routes': [],
        'zones': [],
    })
    source = RestTransitDataSource('https://store.example/', 'secret', timeout=3, session=session)

    stops = source.load_stops()

    assert stops[0]['isTerminal'] is True
    url, params, headers, timeout = session.requests[0]
    assert url == 'https://store.example/rest/v1/stops'
    assert params == {'select': '*'}
    assert headers['apikey'] == 'secret'
    assert timeout == 3


def test_rest_source_table_names():
    session = FakeSession({'jeep_routes': [{'vehicleType': 'jeepney'}]})
    source = RestTransitDataSource('https://store.example', 'k', tables={'routes': 'jeep_routes'}, session=session)

    assert source.load_routes() == [{'vehicleType': 'jeepney'}]


def test_rest_source_errors():
    with pytest.raises(DataUnavailableError):
        RestTransitDataSource('https://store.example', 'k', session=FakeSession({}, status=503)).load_stops()

    with pytest.raises(DataUnavailableError):
        RestTransitDataSource('https://store.example', 'k', session=FakeSession({'stops': {'oops': 1}})).load_stops()


def test_in_memory_source_returns_copies():
    source = InMemoryTransitDataSource(stops=[{'id': 'A'}])

    source.load_stops().append({'id': 'B'})

    assert source.load_stops() == [{'id': 'A'}]


def test_source_from_config(tmp_path):

    class Cfg:
        data_api_url = None
        data_api_key = None
        data_dir = str(tmp_path)

    assert isinstance(source_from_config(Cfg()), CsvTransitDataSource)

    Cfg.data_api_url = 'https://store.example'
    Cfg.data_api_key = 'k'
    assert isinstance(source_from_config(Cfg()), RestTransitDataSource)

"""
Read-only transit data sources.

Every source returns plain dicts; validation into typed graph objects happens
in the graph builder.  A source may raise DataUnavailableError, which the
builder turns into an empty graph.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import requests
from shapely.geometry import Polygon, shape

from ..exceptions import DataUnavailableError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class TransitDataSource:
    """Interface for stop / route / zone providers"""

    def load_stops(self) -> List[Record]:
        raise NotImplementedError

    def load_routes(self) -> List[Record]:
        raise NotImplementedError

    def load_zones(self) -> List[Record]:
        raise NotImplementedError


class InMemoryTransitDataSource(TransitDataSource):

    def __init__(self, stops: Optional[List[Record]] = None, routes: Optional[List[Record]] = None,
                 zones: Optional[List[Record]] = None):
        self.stops = list(stops or [])
        self.routes = list(routes or [])
        self.zones = list(zones or [])

    def load_stops(self) -> List[Record]:
        return list(self.stops)

    def load_routes(self) -> List[Record]:
        return list(self.routes)

    def load_zones(self) -> List[Record]:
        return list(self.zones)


def _records(df: pd.DataFrame) -> List[Record]:
    """DataFrame rows as dicts with NaN cells turned into None."""
    return df.astype(object).where(pd.notnull(df), None).to_dict('records')


class CsvTransitDataSource(TransitDataSource):
    """
    Directory layout:
        stops.csv        stop_id, stop_name, stop_lat, stop_lon, is_terminal, vehicle_types ("jeepney;bus")
        routes.csv       route_id, vehicle_type, base_fare, fare_per_km
        route_stops.csv  route_id, stop_sequence, stop_id
        zones.geojson    FeatureCollection of Polygons with id, name, base_fare, per_km, vehicle_type
    Missing files read as empty.
    """

    STOP_COLUMNS = {'stop_id': 'id', 'stop_name': 'name', 'stop_lat': 'lat', 'stop_lon': 'lng'}

    def __init__(self, data_dir: str = "data"):
        self.data_dir = Path(data_dir)

    def _read_csv(self, filename: str) -> Optional[pd.DataFrame]:
        path = self.data_dir / filename
        if not path.exists():
            logger.warning(f"{path} not found")
            return None
        try:
            return pd.read_csv(path, dtype={'stop_id': str, 'route_id': str})
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise DataUnavailableError(f"Failed to read {path}: {e}") from e

    def load_stops(self) -> List[Record]:
        df = self._read_csv('stops.csv')
        if df is None:
            return []
        df = df.rename(columns=self.STOP_COLUMNS)
        records = _records(df)
        logger.info(f"Loaded {len(records)} stops from {self.data_dir}")
        return records

    def load_routes(self) -> List[Record]:
        routes_df = self._read_csv('routes.csv')
        sequence_df = self._read_csv('route_stops.csv')
        if routes_df is None or sequence_df is None:
            return []

        # Group stop ids by route, ordered by stop_sequence
        ordered: Dict[str, List[str]] = {}
        for route_id, group in sequence_df.sort_values(['route_id', 'stop_sequence']).groupby('route_id', sort=False):
            ordered[str(route_id)] = [str(s) for s in group['stop_id'].tolist()]

        records = []
        for row in _records(routes_df):
            route_id = str(row.get('route_id'))
            row = dict(row, id=route_id, ordered_stops=ordered.get(route_id, []))
            if not row['ordered_stops']:
                logger.warning(f"Route {route_id} has no stops in route_stops.csv")
            records.append(row)
        logger.info(f"Loaded {len(records)} routes from {self.data_dir}")
        return records

    def load_zones(self) -> List[Record]:
        path = self.data_dir / 'zones.geojson'
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as f:
                geo = json.load(f)
        except (OSError, ValueError) as e:
            raise DataUnavailableError(f"Failed to read {path}: {e}") from e

        out: List[Record] = []
        for i, feat in enumerate(geo.get("features", [])):
            geom = shape(feat.get("geometry") or {"type": "GeometryCollection", "geometries": []})
            if not isinstance(geom, Polygon) or geom.is_empty:
                logger.warning(f"Zone feature #{i} is not a Polygon, skipping")
                continue
            props = feat.get("properties", {}) or {}
            out.append({
                "id": props.get("id") or f"ZONE_{i + 1}",
                "name": props.get("name", f"Zone {i + 1}"),
                "base_fare": props.get("base_fare"),
                "per_km": props.get("per_km"),
                "vehicle_type": props.get("vehicle_type", "tricycle"),
                # records use (lat, lng); GeoJSON is (lng, lat)
                "polygon": [(lat, lng) for lng, lat in geom.exterior.coords],
            })
        return out


class RestTransitDataSource(TransitDataSource):
    """Hosted data store exposing PostgREST-style tables (``/rest/v1/<table>``)."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0,
                 tables: Optional[Dict[str, str]] = None, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.tables = {'stops': 'stops', 'routes': 'routes', 'zones': 'zones'}
        self.tables.update(tables or {})
        self.session = session or requests.Session()

    def _fetch(self, key: str) -> List[Record]:
        url = f"{self.base_url}/rest/v1/{self.tables[key]}"
        headers = {'apikey': self.api_key, 'Authorization': f"Bearer {self.api_key}"}
        try:
            resp = self.session.get(url, params={'select': '*'}, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise DataUnavailableError(f"Failed to fetch {key}: {e}") from e
        if not isinstance(data, list):
            raise DataUnavailableError(f"Unexpected payload for {key}: {type(data).__name__}")
        return data

    def load_stops(self) -> List[Record]:
        return self._fetch('stops')

    def load_routes(self) -> List[Record]:
        return self._fetch('routes')

    def load_zones(self) -> List[Record]:
        return self._fetch('zones')


def source_from_config(cfg) -> TransitDataSource:
    """Hosted store when DATA_API_URL is set, otherwise CSV files under DATA_DIR."""
    if cfg.data_api_url and cfg.data_api_key:
        return RestTransitDataSource(cfg.data_api_url, cfg.data_api_key)
    if not os.path.isdir(cfg.data_dir):
        logger.warning(f"Data directory does not exist: {cfg.data_dir}")
    return CsvTransitDataSource(cfg.data_dir)

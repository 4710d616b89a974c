"""
Validation models for records coming out of a transit data source.

Data stores hand back loosely-typed dicts (camelCase from the hosted store,
snake_case from CSV).  These models are the only place such dicts are
accepted; everything past the graph builder works on typed graph objects.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .graph_models import VehicleType


def _coerce_id(value):
    if value is None:
        raise ValueError("id is required")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _coerce_vehicle_types(value):
    if value is None:
        return []
    if isinstance(value, str):
        # CSV cells hold "jeepney;bus"
        return [v.strip().lower() for v in value.replace(',', ';').split(';') if v.strip()]
    return [str(v).strip().lower() for v in value]


class StopRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    name: str = ''
    is_terminal: bool = Field(default=False, alias='isTerminal')
    vehicle_types: List[VehicleType] = Field(default_factory=list, alias='vehicleTypes')

    @field_validator('id', mode='before')
    @classmethod
    def normalize_stop_id(cls, value):
        return _coerce_id(value)

    @field_validator('name', mode='before')
    @classmethod
    def normalize_name(cls, value):
        return '' if value is None else str(value)

    @field_validator('is_terminal', mode='before')
    @classmethod
    def normalize_is_terminal(cls, value):
        # empty CSV cells arrive as None
        return False if value is None else value

    @field_validator('vehicle_types', mode='before')
    @classmethod
    def normalize_vehicle_types(cls, value):
        return _coerce_vehicle_types(value)


class RouteRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    vehicle_type: VehicleType = Field(alias='vehicleType')
    base_fare: float = Field(ge=0, alias='baseFare')
    fare_per_km: float = Field(ge=0, alias='farePerKm')
    ordered_stops: List[str] = Field(alias='orderedStops')

    @field_validator('id', mode='before')
    @classmethod
    def normalize_route_id(cls, value):
        return None if value is None else _coerce_id(value)

    @field_validator('vehicle_type', mode='before')
    @classmethod
    def normalize_vehicle_type(cls, value):
        return str(value).strip().lower() if value is not None else value

    @field_validator('ordered_stops', mode='before')
    @classmethod
    def normalize_stop_ids(cls, value):
        return [_coerce_id(v) for v in (value or [])]


class ZoneRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ''
    base_fare: float = Field(ge=0, alias='baseFare')
    per_km: float = Field(ge=0, alias='perKm')
    polygon: List[Tuple[float, float]]
    vehicle_type: VehicleType = Field(default=VehicleType.TRICYCLE, alias='vehicleType')

    @field_validator('id', mode='before')
    @classmethod
    def normalize_zone_id(cls, value):
        return _coerce_id(value)

    @field_validator('polygon')
    @classmethod
    def check_ring(cls, value):
        if len(value) < 3:
            raise ValueError("polygon needs at least three vertices")
        return value

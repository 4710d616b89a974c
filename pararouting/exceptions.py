"""
Custom exceptions for the Para trip-planning engine

Each error carries a stable ``code`` so it can be reported as a structured
result instead of crossing the engine boundary as an exception.
"""


class ParaRoutingError(Exception):
    """Base exception for the Para engine"""
    code = 'ROUTING_ERROR'


class DataUnavailableError(ParaRoutingError):
    """Raised when the transit data source is empty or failing"""
    code = 'DATA_UNAVAILABLE'


class NoNearbyNodeError(ParaRoutingError):
    """Raised when no terminal or stop is close enough to an endpoint"""
    code = 'NO_NEARBY_NODE'


class WalkingLegUnavailableError(ParaRoutingError):
    """Raised when a first-mile or last-mile walk cannot be computed"""
    code = 'WALKING_LEG_UNAVAILABLE'


class NoPathFoundError(ParaRoutingError):
    """Raised when no criterion yields a path between the access nodes"""
    code = 'NO_PATH_FOUND'


class CalculationInProgressError(ParaRoutingError):
    """Raised when the same trip is already being calculated"""
    code = 'ALREADY_CALCULATING'


class DirectionsAPIError(ParaRoutingError):
    """Raised when a walking-directions provider fails"""
    code = 'DIRECTIONS_API_ERROR'


class InvalidCoordinatesError(ParaRoutingError):
    """Raised when coordinates are invalid or out of bounds"""
    code = 'INVALID_COORDINATES'

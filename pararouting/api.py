"""
Para Routing - Flask Web API Blueprint
Thin HTTP adapter over RouteStitcher
"""

import math
import time
from typing import Any, Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS

from .config import config
from .exceptions import CalculationInProgressError, InvalidCoordinatesError
from .logger import logger
from .models.route_segments import Location
from .route_stitcher import RouteStitcher
from .utils.geo_utils import validate_coordinates

routing_bp = Blueprint('routing_bp', __name__)

STITCHER_KEY = 'ROUTE_STITCHER'


def clean_nan_values(obj):
    """Recursively clean NaN values from objects to make them JSON serializable"""
    if isinstance(obj, dict):
        return {k: clean_nan_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [clean_nan_values(item) for item in obj]
    elif isinstance(obj, float) and (math.isnan(obj) or math.isinf(obj)):
        return None
    else:
        return obj


def _parse_location(raw: Any, default_name: str) -> Optional[Location]:
    if not isinstance(raw, dict):
        return None
    try:
        lat = float(raw['lat'])
        lng = float(raw.get('lng', raw.get('lon')))
    except (KeyError, TypeError, ValueError):
        return None
    return Location(lat=lat, lng=lng, name=str(raw.get('name') or default_name))


def _stitcher() -> RouteStitcher:
    stitcher = current_app.config.get(STITCHER_KEY)
    if stitcher is None:
        stitcher = RouteStitcher.from_config()
        current_app.config[STITCHER_KEY] = stitcher
        logger.info("Route stitcher initialized from environment config")
    return stitcher


@routing_bp.route('/routing/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'status': 'healthy',
        'message': 'Para Routing Engine is running',
        'timestamp': time.time()
    })


@routing_bp.route('/routing/route', methods=['POST'])
def route():
    """Calculate itineraries between two points.

    Body: {"origin": {"lat", "lng", "name"?}, "destination": {...}}
    Trip failures (no nearby stop, no path, walking leg unavailable) come back
    as 200 with an empty route list and an error code.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'No data provided'}), 400

    origin = _parse_location(data.get('origin'), 'Origin')
    destination = _parse_location(data.get('destination'), 'Destination')
    if origin is None or destination is None:
        return jsonify({'error': 'Origin and destination coordinates required'}), 400
    if not validate_coordinates(origin.lat, origin.lng) or not validate_coordinates(destination.lat, destination.lng):
        return jsonify({'error': 'Invalid coordinates', 'error_code': InvalidCoordinatesError.code}), 400

    started = time.time()
    try:
        result = _stitcher().calculate_routes(origin, destination)
    except Exception as e:
        logger.error(f"/routing/route error: {e}")
        return jsonify({'error': 'Internal server error'}), 500

    logger.log_route_request((origin.lat, origin.lng), (destination.lat, destination.lng),
                             len(result.routes), (time.time() - started) * 1000, result.ok)
    status = 409 if result.error_code == CalculationInProgressError.code else 200
    return jsonify(clean_nan_values(result.to_dict())), status


def create_app(stitcher: Optional[RouteStitcher] = None) -> Flask:
    """Flask app with the routing blueprint and CORS enabled."""
    app = Flask(__name__)
    CORS(app)
    if stitcher is not None:
        app.config[STITCHER_KEY] = stitcher
    app.register_blueprint(routing_bp)
    return app


def run(api_config: Optional[dict] = None):
    """Run the development server with HOST / PORT / DEBUG from the environment."""
    api_config = api_config or config.get_api_config()
    app = create_app()
    logger.info(f"Para routing API at http://{api_config['host']}:{api_config['port']}")
    app.run(host=api_config['host'], port=api_config['port'], debug=api_config['debug'])


if __name__ == '__main__':
    run()

__title__ = 'pararouting'
__version__ = '1.0.0'
__author__ = 'Para Team'
__license__ = 'MIT'

__all__ = ['config', 'logger', 'exceptions', 'route_stitcher', 'RouteStitcher', 'NavigationTracker']

# Set default logging handler to avoid "No handler found" warnings.
import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

from .route_stitcher import RouteStitcher  # noqa: E402
from .navigation.route_tracker import NavigationTracker  # noqa: E402

"""RouteGrid — interactive delivery route data grid."""

__version__ = "1.0.0"

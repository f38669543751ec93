"""FuelSense weather-routing core: timeline, forecast, consumption and port safety."""

__version__ = "1.0.0"

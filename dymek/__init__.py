"""
Dymek - geolocated civic issue reports with status notifications.
"""

__version__ = "0.1.0"

"""Chrona - calendar-based health and cycle tracker."""

__version__ = "0.1.0"

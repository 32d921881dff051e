"""SpotlightDL - download Windows Spotlight images."""

__version__ = "1.5.0"

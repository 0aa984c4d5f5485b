"""Build-stage orchestrator for the .NET publish buildpack."""

__version__ = "0.1.0"

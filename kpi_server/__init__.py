"""KPI tracking service: scoring, monthly entry lifecycle, batch provisioning and rankings."""

__version__ = "1.0.0"

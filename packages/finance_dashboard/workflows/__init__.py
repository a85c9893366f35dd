"""Workflow orchestrators composing ingest, analysis and projection."""

from .dashboard_flow import DashboardSession, DashboardView, format_metrics

__all__ = ["DashboardSession", "DashboardView", "format_metrics"]

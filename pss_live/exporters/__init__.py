"""Exporters for PSS-Live metrics."""

from .prometheus import PrometheusExporter

__all__ = ['PrometheusExporter']

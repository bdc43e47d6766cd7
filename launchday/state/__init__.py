"""Rendering boundary types."""

from .snapshots import DashboardSnapshot, KindHealth

__all__ = ['DashboardSnapshot', 'KindHealth']

"""
Retail Shop Reporting Engine
Report Stores
"""
from .frame_store import FrameReportStore
from .sql_store import SqlReportStore

__all__ = ["FrameReportStore", "SqlReportStore"]

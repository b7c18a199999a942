"""
Retail Shop Reporting Engine

Sales and inventory analytics for a single shop: time-windowed aggregates,
rankings, trends, stock health, recommendations and dashboards.
"""

__version__ = "1.0.0"

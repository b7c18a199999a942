"""
Report API Endpoints

REST API for sales and inventory reports, the dashboard and the business
summary. Reporting errors are mapped to status codes by the app's
exception handlers.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from retail_reports.reporting import DashboardComposer, ReportComposer, ReportFilters
from retail_reports.serving.api.dependencies import get_composer, get_dashboard

router = APIRouter()


def report_filters(
    start_date: Optional[str] = Query(default=None, alias="startDate", description="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(default=None, alias="endDate", description="End date (YYYY-MM-DD)"),
    category: Optional[str] = Query(default=None, description="Filter by category"),
    customer: Optional[str] = Query(default=None, description="Filter by customer ID"),
    product: Optional[str] = Query(default=None, description="Filter by product ID"),
    limit: Optional[str] = Query(default=None, description="Number of ranked entries (1-100)"),
) -> ReportFilters:
    # Type errors surface as InvalidFilterError (400), like range errors
    return ReportFilters.parse({
        "start_date": start_date,
        "end_date": end_date,
        "category": category,
        "customer": customer,
        "product": product,
        "limit": limit,
    })


# =============================================================================
# SALES
# =============================================================================

@router.get("/sales/daily")
async def daily_sales_summary(
    date: Optional[str] = Query(default=None, description="Date (YYYY-MM-DD), defaults to today"),
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    """Totals, hourly breakdown and top sellers for one day"""
    return await composer.daily_summary(date)


@router.get("/sales/period")
async def sales_by_period(
    filters: ReportFilters = Depends(report_filters),
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    """Sales report for a date range with rankings and trend"""
    return await composer.sales_by_period(filters)


@router.get("/sales/top-products")
async def top_products(
    filters: ReportFilters = Depends(report_filters),
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    """Products ranked by revenue"""
    return await composer.top_products(filters)


@router.get("/sales/customers")
async def customer_sales(
    filters: ReportFilters = Depends(report_filters),
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    """Customers ranked by spend, with segments"""
    return await composer.customer_sales(filters)


# =============================================================================
# INVENTORY
# =============================================================================

@router.get("/inventory/stock-levels")
async def stock_levels(
    category: Optional[str] = None,
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    """Every product classified against its stock thresholds"""
    return await composer.stock_levels(category)


@router.get("/inventory/low-stock")
async def low_stock(
    category: Optional[str] = None,
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    """Low and out-of-stock products by urgency"""
    return await composer.low_stock(category)


@router.get("/inventory/valuation")
async def inventory_valuation(
    category: Optional[str] = None,
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    """Inventory valued at cost and retail, per category"""
    return await composer.inventory_valuation(category)


@router.get("/inventory/movements")
async def stock_movements(
    filters: ReportFilters = Depends(report_filters),
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    """Daily stock movements per product"""
    return await composer.stock_movement(filters)


# =============================================================================
# COMBINED
# =============================================================================

@router.get("/dashboard")
async def dashboard(dashboard: DashboardComposer = Depends(get_dashboard)) -> Dict[str, Any]:
    """Daily sales, inventory health, top sellers and alerts"""
    return await dashboard.dashboard()


@router.get("/summary")
async def business_summary(
    period: str = Query(default="monthly", description="daily, weekly or monthly"),
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    """Business roll-up for a named period"""
    return await composer.business_summary(period)

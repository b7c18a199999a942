"""
API Dependencies

Per-request access to the report store configured at startup.
"""

from fastapi import HTTPException, Request

from retail_reports.reporting import DashboardComposer, ReportComposer, ReportStore


def get_report_store(request: Request) -> ReportStore:
    store = getattr(request.app.state, "report_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Report store not available")
    return store


def get_composer(request: Request) -> ReportComposer:
    """A fresh composer per request; reports share no state"""
    return ReportComposer(
        get_report_store(request),
        resolver=getattr(request.app.state, "period_resolver", None),
    )


def get_dashboard(request: Request) -> DashboardComposer:
    return DashboardComposer(get_composer(request))

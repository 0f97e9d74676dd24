"""
Report routes for the Tidemark API.

Serves the comparison reports persisted for each target, either as
structured JSON or as the original text artifact.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from api.errors import to_http_exception
from api.schemas import ComparisonReportResponse, ReportListEntry
from core.errors import TidemarkError
from services.store import BaselineStore, get_store

router = APIRouter()


@router.get("/{target}/reports", response_model=list[ReportListEntry])
def list_reports(target: str, store: BaselineStore = Depends(get_store)):
    """List report names for a target, oldest first."""
    try:
        names = store.list_reports(target)
    except TidemarkError as e:
        raise to_http_exception(e)
    return [ReportListEntry(name=name, target=target) for name in names]


@router.get("/{target}/reports/{name}", response_model=ComparisonReportResponse)
def get_report(target: str, name: str, store: BaselineStore = Depends(get_store)):
    """Get one comparison report as structured data."""
    try:
        report = store.load_report(target, name)
    except TidemarkError as e:
        raise to_http_exception(e)

    return ComparisonReportResponse(name=name, **report.to_dict())


@router.get("/{target}/reports/{name}/text", response_class=PlainTextResponse)
def get_report_text(target: str, name: str, store: BaselineStore = Depends(get_store)):
    """Get the human-readable text artifact of a report."""
    try:
        return store.report_text(target, name)
    except TidemarkError as e:
        raise to_http_exception(e)

"""
Baseline routes for the Tidemark API.

Read-only access to stored baselines plus explicit removal. Baselines are
created from the CLI, which has access to the device.
"""
import logging

from fastapi import APIRouter, Depends, Response

from api.errors import to_http_exception
from api.schemas import BaselineDetailResponse, BaselineSummaryResponse
from core.errors import TidemarkError
from services.store import BaselineStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[BaselineSummaryResponse])
def list_baselines(store: BaselineStore = Depends(get_store)):
    """
    List every stored baseline. Empty when none exist.
    """
    return [
        BaselineSummaryResponse(target=s.target, created_at=s.created_at, metadata=s.metadata)
        for s in store.list_baselines()
    ]


@router.get("/{target}", response_model=BaselineDetailResponse)
def get_baseline(
    target: str,
    include_files: bool = False,
    store: BaselineStore = Depends(get_store)
):
    """
    Get a stored baseline's metadata, and its fingerprints when include_files is set.
    """
    try:
        baseline = store.load(target)
    except TidemarkError as e:
        raise to_http_exception(e)

    return BaselineDetailResponse(
        target=baseline.target,
        created_at=baseline.created_at,
        metadata=baseline.metadata,
        hash_algorithm=baseline.hash_algorithm,
        file_count=baseline.file_count,
        files=baseline.fingerprints if include_files else None
    )


@router.delete("/{target}", status_code=204)
def delete_baseline(
    target: str,
    include_reports: bool = False,
    store: BaselineStore = Depends(get_store)
):
    """
    Remove a baseline. Succeeds even when nothing is stored.
    """
    try:
        store.remove(target, include_reports=include_reports)
    except TidemarkError as e:
        raise to_http_exception(e)

    logger.info(f"Baseline removed via API: {target}")
    return Response(status_code=204)

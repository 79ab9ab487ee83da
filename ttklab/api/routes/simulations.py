import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from ...config import get_settings
from ...dependencies import get_catalog
from ...schemas.simulations import (
    PrepatchResponse, SimulationRequest, SimulationResponse, RowFailureResponse
)
from ...services.data_loader import DataCatalog
from ...services.errors import ConfigurationError, DataValidationError, SimulationError
from ...services.row_compare import patch_deltas
from ...services.streaming import StreamEvent, StreamEventType, finite_or_none
from ...services.sweep_driver import SweepProgress, SweepResult, iter_sweep, run_prepatch_comparison, run_sweep

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(result: SweepResult) -> SimulationResponse:
    return SimulationResponse(
        total=result.total,
        rows=[finite_or_none(row.to_dict()) for row in result.rows],
        failures=[RowFailureResponse(**asdict(f)) for f in result.failures],
    )


def _params(request: SimulationRequest):
    try:
        return request.to_params(get_settings())
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


# Sweeps are CPU-bound: plain `def` routes run in the threadpool.
@router.post("", response_model=SimulationResponse)
def run_simulation(request: SimulationRequest, catalog: DataCatalog = Depends(get_catalog)):
    """Run a full sweep and return every row."""
    params = _params(request)
    try:
        result = run_sweep(catalog, params)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DataValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _to_response(result)


@router.post("/stream")
def stream_simulation(request: SimulationRequest, catalog: DataCatalog = Depends(get_catalog)):
    """Run a sweep, streaming progress events and the final rows as SSE."""
    params = _params(request)

    def generate():
        try:
            for event in iter_sweep(catalog, params):
                if isinstance(event, SweepProgress):
                    yield StreamEvent(
                        event_type=StreamEventType.PROGRESS,
                        data=None,
                        done=event.done,
                        total=event.total,
                    ).to_sse()
                else:
                    yield StreamEvent(
                        event_type=StreamEventType.DONE,
                        data=_to_response(event).model_dump(),
                        done=event.total,
                        total=event.total,
                    ).to_sse()
        except SimulationError as e:
            logger.warning(f"Streamed sweep failed: {e}")
            yield StreamEvent(event_type=StreamEventType.ERROR, data=str(e)).to_sse()

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.post("/prepatch", response_model=PrepatchResponse)
def run_prepatch(request: SimulationRequest, catalog: DataCatalog = Depends(get_catalog)):
    """Current vs reconstructed pre-patch stats for every patched weapon."""
    params = _params(request)
    try:
        current, baseline = run_prepatch_comparison(catalog, params)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    current_resp = _to_response(current)
    baseline_resp = _to_response(baseline)
    return PrepatchResponse(
        current=current_resp,
        baseline=baseline_resp,
        deltas=patch_deltas(current_resp.rows, baseline_resp.rows),
    )

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.errors import NoCoinsHandled, StaleDataUnavailable
from app.pricing.engine import PriceEngine, parse_symbols
from app.schemas.prices import ErrorResponse, HealthResponse, PriceResponse

router = APIRouter()


def get_engine(request: Request) -> PriceEngine:
    return request.app.state.engine


def _raise_unavailable(exc: StaleDataUnavailable) -> None:
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"message": str(exc)},
    ) from exc


@router.get("/health", response_model=HealthResponse)
async def health(engine: PriceEngine = Depends(get_engine)) -> HealthResponse:
    return HealthResponse(
        supported_symbols=len(engine.registry.supported),
        snapshots=await engine.store.count(),
    )


@router.get("/service/price", response_model=PriceResponse | ErrorResponse)
async def get_price(
    fsyms: str | None = None,
    tsyms: str | None = None,
    engine: PriceEngine = Depends(get_engine),
) -> PriceResponse | ErrorResponse:
    try:
        data = await engine.resolve(parse_symbols(fsyms), parse_symbols(tsyms))
    except NoCoinsHandled as exc:
        return ErrorResponse(error=str(exc))
    except StaleDataUnavailable as exc:
        _raise_unavailable(exc)
    return PriceResponse(data=data)


# Always answers from the latest snapshot; used to exercise the fallback path.
@router.get("/service/localprice", response_model=PriceResponse | ErrorResponse)
async def get_local_price(
    fsyms: str | None = None,
    tsyms: str | None = None,
    engine: PriceEngine = Depends(get_engine),
) -> PriceResponse | ErrorResponse:
    try:
        data = await engine.resolve_local(parse_symbols(fsyms), parse_symbols(tsyms))
    except NoCoinsHandled as exc:
        return ErrorResponse(error=str(exc))
    except StaleDataUnavailable as exc:
        _raise_unavailable(exc)
    return PriceResponse(data=data)

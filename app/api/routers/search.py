from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_services
from app.api.schemas.search import (
    AutocompleteResponse,
    HotelInfoResponse,
    HotelRatesRequest,
    SearchRequest,
    SearchResponse,
)
from app.domain.value_objects.search_params import SearchParams

router = APIRouter()


@router.post("/search", response_model=SearchResponse, status_code=status.HTTP_200_OK)
async def search_hotels(
    payload: SearchRequest,
    services=Depends(get_services),
) -> SearchResponse:
    params = SearchParams.build(
        checkin=payload.checkin,
        checkout=payload.checkout,
        region_id=payload.region_id,
        guests=payload.guests_payload(),
        currency=payload.currency,
        residency=payload.residency,
        language=payload.language,
    )
    result = await services["search_hotels"].execute(params, page=payload.page, limit=payload.limit)
    return SearchResponse.model_validate(result)


@router.get("/search/{signature}", response_model=SearchResponse, status_code=status.HTTP_200_OK)
async def search_page(
    signature: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    services=Depends(get_services),
) -> SearchResponse:
    result = await services["search_hotels"].paginate(signature, page=page, limit=limit)
    return SearchResponse.model_validate(result)


@router.post("/hotels/{hotel_id}/rates", status_code=status.HTTP_200_OK)
async def hotel_rates(
    hotel_id: str,
    payload: HotelRatesRequest,
    services=Depends(get_services),
) -> dict:
    params = SearchParams.build(
        checkin=payload.checkin,
        checkout=payload.checkout,
        hotel_id=hotel_id,
        guests=payload.guests_payload(),
        currency=payload.currency,
        residency=payload.residency,
        language=payload.language,
    )
    hotel = await services["search_hotels"].hotel_page(hotel_id, params)
    return {"hotel": hotel}


@router.get("/hotels/{hotel_id}/info", response_model=HotelInfoResponse, status_code=status.HTTP_200_OK)
async def hotel_info(
    hotel_id: str,
    language: str = Query(default="en", min_length=2, max_length=5),
    services=Depends(get_services),
) -> HotelInfoResponse:
    static_vm, from_cache = await services["enrich_hotels"].get_static_info(hotel_id, language)
    return HotelInfoResponse(hotel_id=hotel_id, language=language, static_vm=static_vm, from_cache=from_cache)


@router.get("/destinations/autocomplete", response_model=AutocompleteResponse, status_code=status.HTTP_200_OK)
async def autocomplete_destinations(
    query: str = Query(default=""),
    language: str = Query(default="en", alias="locale"),
    limit: int = Query(default=10, ge=1, le=20),
    services=Depends(get_services),
) -> AutocompleteResponse:
    result = await services["autocomplete"].execute(query, language=language, limit=limit)
    return AutocompleteResponse.model_validate(result)

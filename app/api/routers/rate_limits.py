from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_services

router = APIRouter()


@router.get("/rate-limits", status_code=status.HTTP_200_OK)
async def rate_limit_status(services=Depends(get_services)) -> dict:
    """Cuotas ETG configuradas y consumo actual de la ventana por endpoint."""
    return {"endpoints": services["rate_limiter"].all_statuses()}

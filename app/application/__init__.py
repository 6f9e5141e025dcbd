"""
Capa de Aplicación - Integración de reservas de hotel con ETG.

Esta capa contiene los casos de uso, servicios e interfaces (puertos).
Orquesta la lógica de negocio y define los contratos con la infraestructura.

Estructura:
- use_cases/: Búsqueda, enriquecimiento y autocompletado de destinos
- services/: Caché con TTL y orquestación del flujo de reserva
- interfaces/: Puertos (contratos para adaptadores)
"""

from app.application.interfaces import (
    CacheRepo,
    Clock,
    FakeClock,
    HotelApiGateway,
    SystemClock,
)

__all__ = [
    # Interfaces - Repositories
    "CacheRepo",
    # Interfaces - Gateways
    "HotelApiGateway",
    # Interfaces - Utilities
    "Clock",
    "SystemClock",
    "FakeClock",
]

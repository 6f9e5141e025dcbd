"""
Capa de Infraestructura - Integración de reservas de hotel con ETG.

Esta capa contiene las implementaciones concretas de los puertos (interfaces).

Estructura:
- etg/: Cliente HTTP de la API B2B v3, cuotas y rate limiter por endpoint
- db/: Tabla de caché, engine async y repositorio SQL
- in_memory/: Implementaciones in-memory para desarrollo y testing
- circuit_breaker.py: Circuit breaker del proveedor
"""

"""
Rate limiting por endpoint con el Limiter de slowapi de la app
"""
from fastapi import Request, HTTPException
from limits import parse
from slowapi.util import get_remote_address

def apply_rate_limit(request: Request, limit: str):
    """
    Aplica rate limiting a un endpoint específico.
    Uso: apply_rate_limit(request, "5/minute")

    Si el limiter no está configurado (por ejemplo, en tests), la función no hace nada.
    """
    limiter = getattr(request.app.state, "limiter", None)
    if limiter is None or not getattr(limiter, "enabled", True):
        return

    key = get_remote_address(request)
    # El contador es por IP y por ruta, en el storage de este Limiter
    if not limiter.limiter.hit(parse(limit), key, request.url.path):
        raise HTTPException(
            status_code=429,
            detail=f"Too many requests. Limit: {limit}. Try again later."
        )

from fastapi import HTTPException, Request

from ..services import EngineServices


def get_services(request: Request) -> EngineServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="engine not started")
    return services

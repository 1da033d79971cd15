from fastapi import APIRouter, Request

from src.server.settings.config import settings

router = APIRouter(tags=["system"])


@router.get("/health")
def health():
    return {"status": "ok", "app": settings.app_name, "environment": settings.environment}


@router.get("/__debug/routes")
def list_routes(request: Request):
    # OpenAPI-schemat har alla inkluderade routrar platta, oavsett FastAPI-version
    out = []
    for path, operations in request.app.openapi().get("paths", {}).items():
        out.append({
            "path": path,
            "methods": sorted(m.upper() for m in operations),
            "name": ", ".join(op.get("operationId", "?") for op in operations.values()),
            "tags": sorted({t for op in operations.values() for t in op.get("tags", [])}),
        })
    return out

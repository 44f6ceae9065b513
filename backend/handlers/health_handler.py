from fastapi import APIRouter, Request


router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    config = getattr(request.app.state, "render_config", None)
    if config is None:
        return {"ok": True, "shotstack": {"configured": False}}

    check = config.validate()
    return {
        "ok": True,
        "shotstack": {
            "configured": check.is_valid,
            "environment": config.environment,
            "errors": check.errors,
            "warnings": check.warnings,
        },
    }

from fastapi import FastAPI, HTTPException

from api.app import create_app

try:
    app = create_app()
except RuntimeError as exc:
    reason = str(exc)
    app = FastAPI(title="docpress", version="0.1.0")

    @app.get("/{path:path}")
    async def api_unavailable(path: str) -> dict[str, str]:
        raise HTTPException(
            status_code=503,
            detail=f"Service not configured. {reason}. Set the variables in .env and restart.",
        )

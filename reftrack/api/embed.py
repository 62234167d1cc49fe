"""
Serves the embeddable browser tracking snippet.
"""
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse

router = APIRouter(tags=["embed"])

TRACKER_SCRIPT = Path(__file__).resolve().parent.parent / "static" / "reftrack-tracker.js"


@router.get("/scripts/reftrack-tracker.js", include_in_schema=False)
async def tracker_script():
    return FileResponse(
        TRACKER_SCRIPT,
        media_type="application/javascript",
        headers={"Cache-Control": "public, max-age=3600", "Access-Control-Allow-Origin": "*"},
    )

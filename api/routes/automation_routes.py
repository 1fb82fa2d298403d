# api/routes/automation_routes.py
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from ..deps import get_automation_loop

router = APIRouter()

class ModeRequest(BaseModel):
    mode: str

def _require_loop(loop):
    if loop is None:
        raise HTTPException(status_code=503, detail="automation loop not initialized")
    return loop

@router.post("/automation/mode")
async def set_mode(req: ModeRequest, loop = Depends(get_automation_loop)):
    loop = _require_loop(loop)
    # a rejected transition is a normal answer, not a server error
    accepted = await loop.set_mode(req.mode.strip().upper())
    return {"accepted": accepted, "status": loop.status().model_dump(mode="json")}

@router.get("/automation/status")
def get_status(loop = Depends(get_automation_loop)):
    loop = _require_loop(loop)
    return loop.status().model_dump(mode="json")

import os
import logging
from datetime import date, timedelta
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

# Load env from local .env before reading DB_PATH / LOG_LEVEL
here = os.path.dirname(__file__)
load_dotenv(os.path.join(here, ".env"))
load_dotenv()  # also load project/root .env if present

from . import stats
from .engine import LoadLifecycleEngine
from .errors import LaundryTrackerError, NotFoundError, PreconditionError, ValidationError
from .schemas import (
    ITEM_TYPES, AcknowledgePickupRequest, Actor, ActivityPoint, AdminStats, ApproveRequest,
    CollectRequest, DropRequest, LoadView, Notification, PendingDrop,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

NOTIFICATION_LIMIT = int(os.getenv("NOTIFICATION_LIMIT", "50"))

app = FastAPI(title="Laundry Load Tracker API")

STATUS_FOR_ERROR = {
    ValidationError: 422,
    PreconditionError: 409,
    NotFoundError: 404,
}

@lru_cache(maxsize=1)
def get_engine() -> LoadLifecycleEngine:
    return LoadLifecycleEngine(os.getenv("DB_PATH", "./data/laundry.db"))

@app.exception_handler(LaundryTrackerError)
async def handle_tracker_error(request: Request, exc: LaundryTrackerError):
    status = STATUS_FOR_ERROR.get(type(exc), 400)
    logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())

def current_actor(x_actor_id: str = Header(...), x_actor_role: str = Header(...)) -> Actor:
    if x_actor_role not in ("admin", "driver", "hotel_manager"):
        raise HTTPException(status_code=400, detail=f"Unknown role '{x_actor_role}'")
    return Actor(uid=x_actor_id, role=x_actor_role)

def require_role(*roles: str):
    def check(actor: Actor = Depends(current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(status_code=403, detail=f"Role '{actor.role}' may not perform this action")
        return actor
    return check

@app.get("/item-types")
def item_types() -> List[str]:
    return ITEM_TYPES

# ----- loads -----

@app.post("/loads", status_code=201, response_model=LoadView)
def collect_load(req: CollectRequest, actor: Actor = Depends(require_role("driver")),
                 engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.collect(actor.uid, req.hotel_id, req.items, notes=req.notes)

@app.get("/loads", response_model=List[LoadView])
def list_loads(hotel_id: Optional[str] = None, driver_id: Optional[str] = None,
               status: Optional[List[str]] = Query(default=None),
               actor: Actor = Depends(current_actor),
               engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.list_loads(hotel_id=hotel_id, driver_id=driver_id, statuses=status)

@app.get("/loads/{load_id}", response_model=LoadView)
def get_load(load_id: str, actor: Actor = Depends(current_actor),
             engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.get_load(load_id)

@app.post("/loads/{load_id}/acknowledge", response_model=LoadView)
def acknowledge_pickup(load_id: str, req: AcknowledgePickupRequest,
                       actor: Actor = Depends(require_role("hotel_manager")),
                       engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.acknowledge_pickup(load_id, actor.uid, req.due_date, remark=req.remark)

@app.post("/loads/{load_id}/processing", response_model=LoadView)
def mark_processing(load_id: str, actor: Actor = Depends(require_role("admin")),
                    engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.mark_processing(load_id, actor.uid)

@app.post("/loads/{load_id}/drop", response_model=LoadView)
def drop_load(load_id: str, req: DropRequest, actor: Actor = Depends(require_role("driver")),
              engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.drop(load_id, actor.uid, req.items)

@app.post("/loads/{load_id}/approve", response_model=LoadView)
def approve_load(load_id: str, req: ApproveRequest, actor: Actor = Depends(require_role("hotel_manager")),
                 engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.approve(load_id, actor.uid, req.items, notes=req.notes)

@app.get("/drivers/{driver_id}/pending-drops", response_model=List[PendingDrop])
def pending_drops(driver_id: str, actor: Actor = Depends(require_role("driver", "admin")),
                  engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.pending_drops(driver_id)

@app.get("/hotels/{hotel_id}/pending-approvals", response_model=List[LoadView])
def pending_approvals(hotel_id: str, actor: Actor = Depends(require_role("hotel_manager", "admin")),
                      engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.pending_approvals(hotel_id)

# ----- notifications -----

@app.get("/notifications", response_model=List[Notification])
def my_notifications(unread_only: bool = False, limit: int = Query(default=NOTIFICATION_LIMIT, ge=1, le=500),
                     actor: Actor = Depends(current_actor),
                     engine: LoadLifecycleEngine = Depends(get_engine)):
    return engine.notifications_for(actor.uid, unread_only=unread_only, limit=limit)

@app.post("/notifications/read-all")
def mark_all_read(actor: Actor = Depends(current_actor), engine: LoadLifecycleEngine = Depends(get_engine)):
    return {"updated": engine.mark_all_read(actor.uid)}

@app.post("/notifications/{notification_id}/read")
def mark_read(notification_id: str, actor: Actor = Depends(current_actor),
              engine: LoadLifecycleEngine = Depends(get_engine)):
    engine.mark_notification_read(notification_id)
    return {"id": notification_id, "read": True}

# ----- dashboard -----

@app.get("/stats", response_model=AdminStats)
def admin_stats(actor: Actor = Depends(require_role("admin")), engine: LoadLifecycleEngine = Depends(get_engine)):
    return stats.admin_stats(engine.store, engine.directory, engine.clock())

@app.get("/stats/activity", response_model=List[ActivityPoint])
def activity(start: Optional[date] = None, end: Optional[date] = None,
             hotel_id: Optional[str] = None, driver_id: Optional[str] = None,
             actor: Actor = Depends(require_role("admin")),
             engine: LoadLifecycleEngine = Depends(get_engine)):
    end = end or engine.clock().date()
    start = start or end - timedelta(days=6)
    return stats.activity_series(engine.store, start, end, hotel_id=hotel_id, driver_id=driver_id)

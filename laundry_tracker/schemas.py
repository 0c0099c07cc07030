from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime

LoadStatus = Literal["collected", "processing", "partially_dropped", "dropped", "approved", "partial"]
UserRole = Literal["admin", "driver", "hotel_manager"]
NotificationType = Literal["load_collected", "load_dropped", "load_approved", "load_partial", "load_delayed"]

TERMINAL_STATUSES = ("approved", "partial")
DROPPABLE_STATUSES = ("collected", "processing", "partially_dropped")
ACTIVE_STATUSES = ("collected", "processing")

ITEM_TYPES = [
    "Bedsheet", "Pillow Cover", "Towel", "Bath Towel", "Hand Towel", "Duvet Cover",
    "Blanket", "Table Cloth", "Napkin", "Bath Mat", "Curtain", "Uniform",
]

class LoadItem(BaseModel):
    type: str
    quantity: int = Field(ge=0)

class RequestedItem(BaseModel):
    # not bounded: out-of-range requests are clamped by the engine
    type: str
    quantity: int

class Load(BaseModel):
    id: str
    hotel_id: str
    driver_id: str
    status: LoadStatus
    items: List[LoadItem]
    collected_at: datetime
    dropped_items: Optional[List[LoadItem]] = None
    remaining_items: Optional[List[LoadItem]] = None
    approved_items: Optional[List[LoadItem]] = None
    dropped_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    due_date: Optional[datetime] = None
    pickup_acknowledged: bool = False
    pickup_remark: Optional[str] = None
    notes: Optional[str] = None
    approval_notes: Optional[str] = None

class LoadView(Load):
    overdue: bool = False

class PendingDrop(LoadView):
    outstanding_items: List[LoadItem] = []

class Notification(BaseModel):
    id: Optional[str] = None
    target_uid: str
    target_role: Optional[UserRole] = None
    type: NotificationType
    title: str
    body: str
    load_id: Optional[str] = None
    hotel_id: Optional[str] = None
    read: bool = False
    created_at: Optional[datetime] = None

class UserProfile(BaseModel):
    uid: str
    email: str
    name: str
    role: UserRole
    assigned_hotels: List[str] = Field(default_factory=list)

class Hotel(BaseModel):
    id: str
    name: str
    address: str = ""
    manager_id: Optional[str] = None

class Actor(BaseModel):
    uid: str
    role: UserRole

# --- request bodies ---

class CollectRequest(BaseModel):
    hotel_id: str
    items: List[RequestedItem]
    notes: Optional[str] = None

class AcknowledgePickupRequest(BaseModel):
    due_date: Optional[datetime] = None
    remark: Optional[str] = None

class DropRequest(BaseModel):
    items: List[RequestedItem]

class ApproveRequest(BaseModel):
    items: List[RequestedItem]
    notes: Optional[str] = None

# --- dashboard ---

class AdminStats(BaseModel):
    hotels: int
    drivers: int
    active_loads: int
    collections_today: int
    overdue_loads: int

class ActivityPoint(BaseModel):
    date: str
    picked: int
    dropped: int
    load_ids: List[str] = []

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

LeadSource = Literal["web_form", "whatsapp", "email", "other"]
LeadStatus = Literal["new", "qualified", "contacted", "converted", "lost"]
Role = Literal["admin", "manager", "agent"]
Channel = Literal["email", "whatsapp", "phone", "web", "social", "in-person", "other"]
Direction = Literal["inbound", "outbound"]
InteractionType = Literal["communication", "engagement", "insight"]
Sentiment = Literal["positive", "negative", "neutral"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RegisterIn(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Optional[Role] = None


class LoginIn(CamelModel):
    email: EmailStr
    password: str


class ChangePasswordIn(CamelModel):
    current_password: str
    new_password: str = Field(min_length=6)


class UserOut(CamelModel):
    id: int
    name: str
    email: str
    role: str
    score: int
    created_at: datetime
    last_login: Optional[datetime] = None


class LeadIn(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    source: LeadSource = "other"
    initial_message: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class LeadUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    source: Optional[LeadSource] = None
    initial_message: Optional[str] = None
    tags: Optional[List[str]] = None
    status: Optional[LeadStatus] = None
    lead_score: Optional[float] = None
    reopen: bool = False


class LeadOut(CamelModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    source: str
    initial_message: Optional[str] = None
    lead_score: float
    status: str
    tags: List[str] = Field(default_factory=list)
    last_interaction: Optional[datetime] = None
    last_interaction_channel: Optional[str] = None
    last_engagement: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class RecommendedAction(CamelModel):
    action: str
    priority: Literal["high", "medium", "low"]
    description: str


class InteractionIn(CamelModel):
    lead_id: int
    channel: Channel
    direction: Direction
    content: str
    type: InteractionType = "communication"
    sentiment: Optional[Sentiment] = None
    intent_score: Optional[float] = Field(default=None, ge=0, le=100)


class InteractionUpdate(CamelModel):
    content: Optional[str] = None
    sentiment: Optional[Sentiment] = None
    intent_score: Optional[float] = Field(default=None, ge=0, le=100)
    read: Optional[bool] = None


class InteractionOut(CamelModel):
    id: int
    lead_id: int
    channel: str
    direction: str
    content: str
    type: str
    sentiment: Optional[str] = None
    intent_score: Optional[float] = None
    insights: Optional[Dict[str, Any]] = None
    recommended_actions: Optional[List[Dict[str, Any]]] = None
    details: Optional[Dict[str, Any]] = None
    read: bool
    created_by: Optional[int] = None
    timestamp: datetime


class TrackEventIn(CamelModel):
    event_id: Optional[str] = None
    url: Optional[str] = None


class WhatsAppSendIn(CamelModel):
    lead_id: int
    message: str = Field(min_length=1)


class EmailSendIn(CamelModel):
    lead_id: int
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)


class OutreachIn(CamelModel):
    lead_id: int
    channel: Literal["email", "whatsapp"]


class InsightIn(CamelModel):
    lead_id: int
    insights: Dict[str, Any] = Field(default_factory=dict)
    recommended_actions: List[RecommendedAction] = Field(default_factory=list)


class ActivityIn(CamelModel):
    type: str
    description: str = ""


class ActivityOut(CamelModel):
    id: int
    user_id: int
    type: str
    points: int
    description: str
    timestamp: datetime


class UserScoreOut(CamelModel):
    user_id: int
    name: str
    email: str
    score: int
    activities: List[ActivityOut] = Field(default_factory=list)


class EmailWebhookIn(CamelModel):
    sender: Optional[str] = Field(default=None, alias="from")
    subject: Optional[str] = None
    body: Optional[str] = None
    text: Optional[str] = None
    lead_id: int

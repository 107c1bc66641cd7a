# braindump/models.py
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

NEUTRAL_GRAY = "#6b7280"
UNSORTED = "Unsorted"
UNSORTED_ORDER = 99

DEFAULT_BUCKETS = [
    {"name": "Work", "color": "#3b82f6", "order": 0},
    {"name": "Music", "color": "#8b5cf6", "order": 1},
    {"name": "Social", "color": "#ec4899", "order": 2},
    {"name": "Motorcycles", "color": "#f97316", "order": 3},
    {"name": "Health", "color": "#22c55e", "order": 4},
    {"name": "Ideas", "color": "#eab308", "order": 5},
    {"name": UNSORTED, "color": NEUTRAL_GRAY, "order": UNSORTED_ORDER},
]

Priority = Literal["low", "medium", "high"]


class IntakeStatus(str, Enum):
    PENDING = "pending"
    PARSED = "parsed"
    PROCESSED = "processed"
    FAILED = "failed"


def _stringify_id(value):
    if isinstance(value, ObjectId):
        return str(value)
    return value


def _as_utc(value):
    # documents come back from Mongo as naive UTC
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------- Stored documents ----------

class StoredDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    userId: str
    createdAt: datetime
    updatedAt: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return _stringify_id(v)

    @field_validator("createdAt", "updatedAt", mode="after")
    @classmethod
    def _timestamps_utc(cls, v):
        return _as_utc(v)


class Bucket(StoredDocument):
    name: str
    color: str
    order: int
    isDefault: bool = False


class CardLabel(BaseModel):
    name: str
    color: str = NEUTRAL_GRAY


class CardReminder(BaseModel):
    remindAt: datetime
    pushedToApple: bool = False
    appleReminderId: Optional[str] = None
    pushedAt: Optional[datetime] = None

    @field_validator("remindAt", "pushedAt", mode="after")
    @classmethod
    def _dates_utc(cls, v):
        return _as_utc(v)


class Card(StoredDocument):
    bucketId: str
    title: str
    content: str = ""
    labels: List[CardLabel] = []
    order: int
    isActionable: bool = False
    priority: Optional[Priority] = None
    reminder: Optional[CardReminder] = None
    sourceIntakeId: Optional[str] = None

    @field_validator("bucketId", "sourceIntakeId", mode="before")
    @classmethod
    def _refs_to_str(cls, v):
        return _stringify_id(v)


class ParsedIdea(BaseModel):
    title: str
    content: str = ""
    suggestedBucket: str = UNSORTED
    isActionable: bool = False
    suggestedLabels: List[str] = []
    suggestedReminder: Optional[str] = None  # ISO8601, as returned by the model


class IntakeSession(StoredDocument):
    rawContent: str
    filename: Optional[str] = None
    parsedIdeas: List[ParsedIdea] = []
    status: IntakeStatus
    claudeModel: Optional[str] = None
    processingTimeMs: Optional[int] = None
    errorMessage: Optional[str] = None


class UserPreferences(BaseModel):
    userId: str
    favoriteTeams: Optional[List[str]] = None
    notifications: Optional[bool] = None
    theme: Optional[str] = None
    measurementUnits: Optional[Literal["metric", "imperial"]] = None
    createdAt: datetime
    updatedAt: datetime

    @field_validator("createdAt", "updatedAt", mode="after")
    @classmethod
    def _timestamps_utc(cls, v):
        return _as_utc(v)


# ---------- Request bodies ----------

class BucketCreate(BaseModel):
    name: str = Field(min_length=1)
    color: Optional[str] = None


class BucketUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    order: Optional[int] = None


class BucketReorder(BaseModel):
    orderedIds: List[str]


class CardCreate(BaseModel):
    bucketId: str = Field(min_length=1)
    title: Optional[str] = None
    content: Optional[str] = None
    labels: Optional[List[CardLabel]] = None
    isActionable: Optional[bool] = None
    priority: Optional[Priority] = None
    reminder: Optional[CardReminder] = None


class CardUpdate(BaseModel):
    bucketId: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    labels: Optional[List[CardLabel]] = None
    isActionable: Optional[bool] = None
    priority: Optional[Priority] = None
    reminder: Optional[CardReminder] = None


class CardMove(BaseModel):
    toBucketId: str = Field(min_length=1)
    order: int = 0


class CardReorder(BaseModel):
    bucketId: str = Field(min_length=1)
    orderedIds: List[str]


class IntakeParse(BaseModel):
    content: str = Field(min_length=1)


class ConfirmedIdea(BaseModel):
    """A parsed idea after the user's review; edited fields win over suggestions."""

    title: Optional[str] = None
    content: Optional[str] = None
    bucketName: Optional[str] = None
    suggestedBucket: Optional[str] = None
    isActionable: bool = False
    labels: Optional[List[str]] = None
    suggestedLabels: Optional[List[str]] = None
    reminder: Optional[str] = None  # ISO8601; parsed per idea on confirm
    suggestedReminder: Optional[str] = None


class IntakeConfirm(BaseModel):
    ideas: List[ConfirmedIdea]


class ReminderPush(BaseModel):
    cardId: str = Field(min_length=1)


class ReminderPushBatch(BaseModel):
    cardIds: List[str] = Field(min_length=1)


class PreferencesUpdate(BaseModel):
    favoriteTeams: Optional[List[str]] = None
    notifications: Optional[bool] = None
    theme: Optional[str] = None
    measurementUnits: Optional[Literal["metric", "imperial"]] = None


# ---------- Responses ----------

class MessageResponse(BaseModel):
    message: str


class BucketDeleted(MessageResponse):
    movedCards: int


class ConfirmError(BaseModel):
    index: int
    title: str
    error: str


class ConfirmResult(BaseModel):
    message: str
    cards: List[Card]
    errors: List[ConfirmError] = []


class ReminderStatus(BaseModel):
    available: bool
    lists: Optional[List[str]] = None
    error: Optional[str] = None


class ReminderResult(BaseModel):
    success: bool
    reminderId: Optional[str] = None
    error: Optional[str] = None


class PushResult(BaseModel):
    success: bool
    reminderId: Optional[str] = None
    message: str


class BatchPushItem(BaseModel):
    cardId: str
    success: bool
    reminderId: Optional[str] = None
    error: Optional[str] = None


class BatchPushResult(BaseModel):
    message: str
    pushed: int
    total: int
    results: List[BatchPushItem]

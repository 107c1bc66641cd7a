# braindump/routes.py
# Brain dump API routes, mounted under /api/brain-dump

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse

from braindump.auth import current_user
from braindump.config import MAX_UPLOAD_BYTES, REMINDERS_LIST
from braindump.intake import IntakePipeline, read_upload
from braindump.models import (
    BatchPushResult,
    Bucket,
    BucketCreate,
    BucketDeleted,
    BucketReorder,
    BucketUpdate,
    Card,
    CardCreate,
    CardMove,
    CardReorder,
    CardUpdate,
    ConfirmResult,
    IntakeConfirm,
    IntakeParse,
    IntakeSession,
    IntakeStatus,
    MessageResponse,
    PreferencesUpdate,
    PushResult,
    ReminderPush,
    ReminderPushBatch,
    ReminderStatus,
    UserPreferences,
)
from braindump.reminders import RemindersClient, push_card, push_cards
from braindump.store import BrainDumpStore

router = APIRouter(prefix="/api/brain-dump")
preferences_router = APIRouter(prefix="/api")


# Dependency injection: components are built once in main.create_app

def get_store(request: Request) -> BrainDumpStore:
    return request.app.state.store


def get_pipeline(request: Request) -> IntakePipeline:
    return request.app.state.pipeline


def get_reminders(request: Request) -> RemindersClient:
    return request.app.state.reminders


# ---------- Buckets ----------

@router.get("/buckets", response_model=list[Bucket])
def list_buckets(user_id: str = Depends(current_user), store: BrainDumpStore = Depends(get_store)):
    # first access bootstraps the default buckets
    return store.ensure_default_buckets(user_id)


@router.post("/buckets", status_code=201, response_model=Bucket)
def create_bucket(body: BucketCreate, user_id: str = Depends(current_user),
                  store: BrainDumpStore = Depends(get_store)):
    return store.create_bucket(user_id, name=body.name, color=body.color)


@router.put("/buckets/reorder", response_model=MessageResponse)
def reorder_buckets(body: BucketReorder, user_id: str = Depends(current_user),
                    store: BrainDumpStore = Depends(get_store)):
    store.reorder_buckets(user_id, body.orderedIds)
    return {"message": "Buckets reordered successfully"}


@router.put("/buckets/{bucket_id}", response_model=Bucket)
def update_bucket(bucket_id: str, body: BucketUpdate, user_id: str = Depends(current_user),
                  store: BrainDumpStore = Depends(get_store)):
    bucket = store.update_bucket(user_id, bucket_id, body.model_dump(exclude_none=True))
    if bucket is None:
        raise HTTPException(404, "Bucket not found")
    return bucket


@router.delete("/buckets/{bucket_id}", response_model=BucketDeleted)
def delete_bucket(bucket_id: str, user_id: str = Depends(current_user),
                  store: BrainDumpStore = Depends(get_store)):
    """Delete a bucket; its cards move to Unsorted."""
    moved = store.delete_bucket(user_id, bucket_id)
    if moved is None:
        raise HTTPException(404, "Bucket not found")
    return {"message": "Bucket deleted successfully", "movedCards": moved}


# ---------- Cards ----------

@router.get("/cards", response_model=list[Card])
def list_cards(bucketId: str | None = None, user_id: str = Depends(current_user),
               store: BrainDumpStore = Depends(get_store)):
    return store.list_cards(user_id, bucketId or None)


@router.put("/cards/reorder", response_model=MessageResponse)
def reorder_cards(body: CardReorder, user_id: str = Depends(current_user),
                  store: BrainDumpStore = Depends(get_store)):
    store.reorder_cards(user_id, body.bucketId, body.orderedIds)
    return {"message": "Cards reordered successfully"}


@router.get("/cards/{card_id}", response_model=Card)
def get_card(card_id: str, user_id: str = Depends(current_user), store: BrainDumpStore = Depends(get_store)):
    card = store.get_card(user_id, card_id)
    if card is None:
        raise HTTPException(404, "Card not found")
    return card


@router.post("/cards", status_code=201, response_model=Card)
def create_card(body: CardCreate, user_id: str = Depends(current_user),
                store: BrainDumpStore = Depends(get_store)):
    return store.create_card(user_id, body.bucketId, body.model_dump(exclude={"bucketId"}, exclude_none=True))


@router.put("/cards/{card_id}", response_model=Card)
def update_card(card_id: str, body: CardUpdate, user_id: str = Depends(current_user),
                store: BrainDumpStore = Depends(get_store)):
    card = store.update_card(user_id, card_id, body.model_dump(exclude_none=True))
    if card is None:
        raise HTTPException(404, "Card not found")
    return card


@router.delete("/cards/{card_id}", response_model=MessageResponse)
def delete_card(card_id: str, user_id: str = Depends(current_user), store: BrainDumpStore = Depends(get_store)):
    if not store.delete_card(user_id, card_id):
        raise HTTPException(404, "Card not found")
    return {"message": "Card deleted successfully"}


@router.put("/cards/{card_id}/move", response_model=Card)
def move_card(card_id: str, body: CardMove, user_id: str = Depends(current_user),
              store: BrainDumpStore = Depends(get_store)):
    card = store.move_card(user_id, card_id, body.toBucketId, body.order)
    if card is None:
        raise HTTPException(404, "Card not found")
    return card


# ---------- Intake ----------

def _started(session: IntakeSession):
    if session.status == IntakeStatus.FAILED:
        return JSONResponse({"error": session.errorMessage, "sessionId": session.id}, status_code=500)
    return JSONResponse(session.model_dump(mode="json", by_alias=True), status_code=201)


@router.post("/intake/parse", status_code=201, response_model=IntakeSession)
def parse_intake(body: IntakeParse, user_id: str = Depends(current_user),
                 pipeline: IntakePipeline = Depends(get_pipeline)):
    return _started(pipeline.start(user_id, body.content))


@router.post("/intake/upload", status_code=201, response_model=IntakeSession)
def upload_intake(file: UploadFile = File(...), user_id: str = Depends(current_user),
                  pipeline: IntakePipeline = Depends(get_pipeline)):
    data = file.file.read(MAX_UPLOAD_BYTES + 1)
    content = read_upload(file.filename, file.content_type, data, MAX_UPLOAD_BYTES)
    return _started(pipeline.start(user_id, content, file.filename))


@router.get("/intake/{session_id}", response_model=IntakeSession)
def get_intake(session_id: str, user_id: str = Depends(current_user), store: BrainDumpStore = Depends(get_store)):
    session = store.get_session(user_id, session_id)
    if session is None:
        raise HTTPException(404, "Intake session not found")
    return session


@router.post("/intake/{session_id}/confirm", response_model=ConfirmResult)
def confirm_intake(session_id: str, body: IntakeConfirm, user_id: str = Depends(current_user),
                   pipeline: IntakePipeline = Depends(get_pipeline)):
    return pipeline.confirm(user_id, session_id, body.ideas)


# ---------- Reminders ----------

@router.get("/reminders/status", response_model=ReminderStatus)
def reminders_status(user_id: str = Depends(current_user), reminders: RemindersClient = Depends(get_reminders)):
    return reminders.check_status()


@router.post("/reminders/push", response_model=PushResult)
def push_reminder(body: ReminderPush, user_id: str = Depends(current_user),
                  store: BrainDumpStore = Depends(get_store), reminders: RemindersClient = Depends(get_reminders)):
    result = push_card(store, reminders, user_id, body.cardId, REMINDERS_LIST)
    if not result.success:
        raise HTTPException(500, result.error or "Failed to create reminder")
    return {"success": True, "reminderId": result.reminderId, "message": "Reminder created in Apple Reminders"}


@router.post("/reminders/push-batch", response_model=BatchPushResult)
def push_reminders(body: ReminderPushBatch, user_id: str = Depends(current_user),
                   store: BrainDumpStore = Depends(get_store), reminders: RemindersClient = Depends(get_reminders)):
    return push_cards(store, reminders, user_id, body.cardIds, REMINDERS_LIST)


# ---------- Dashboard preferences ----------

@preferences_router.get("/preferences", response_model=UserPreferences)
def get_preferences(user_id: str = Depends(current_user), store: BrainDumpStore = Depends(get_store)):
    prefs = store.get_preferences(user_id)
    if prefs is None:
        raise HTTPException(404, "Preferences not found")
    return prefs


@preferences_router.put("/preferences", response_model=UserPreferences)
def update_preferences(body: PreferencesUpdate, user_id: str = Depends(current_user),
                       store: BrainDumpStore = Depends(get_store)):
    return store.update_preferences(user_id, body.model_dump(exclude_none=True))

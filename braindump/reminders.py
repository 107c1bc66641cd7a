# braindump/reminders.py
# macOS Reminders via osascript. Failures come back as unsuccessful results.

import subprocess
from dataclasses import dataclass
from datetime import datetime

import structlog

from braindump.errors import NotFoundError
from braindump.models import BatchPushItem, BatchPushResult, ReminderResult, ReminderStatus
from braindump.timeutil import utcnow

logger = structlog.get_logger(__name__)


@dataclass
class ReminderRequest:
    title: str
    notes: str
    list_name: str
    due_date: datetime | None = None


class ReminderScriptError(Exception):
    pass


def escape_applescript(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def _due_date_lines(due: datetime) -> list[str]:
    # component-wise; AppleScript date strings are locale dependent
    if due.tzinfo is not None:
        due = due.astimezone()
    seconds = due.hour * 3600 + due.minute * 60 + due.second
    return [
        "set dueDate to current date",
        "set day of dueDate to 1",
        f"set year of dueDate to {due.year}",
        f"set month of dueDate to {due.month}",
        f"set day of dueDate to {due.day}",
        f"set time of dueDate to {seconds}",
    ]


def build_create_script(request: ReminderRequest) -> str:
    title = escape_applescript(request.title)
    notes = escape_applescript(request.notes)
    list_name = escape_applescript(request.list_name)

    lines = _due_date_lines(request.due_date) if request.due_date else []
    lines += [
        'tell application "Reminders"',
        "    try",
        f'        set targetList to list "{list_name}"',
        "    on error",
        f'        make new list with properties {{name:"{list_name}"}}',
        f'        set targetList to list "{list_name}"',
        "    end try",
        f'    set newReminder to make new reminder at end of targetList with properties {{name:"{title}", body:"{notes}"}}',
    ]
    if request.due_date:
        lines.append("    set due date of newReminder to dueDate")
    lines += [
        "    return id of newReminder",
        "end tell",
    ]
    return "\n".join(lines)


class RemindersClient:
    def __init__(self, osascript: str = "osascript", timeout: float = 30):
        self.osascript = osascript
        self.timeout = timeout

    def _run(self, script: str) -> str:
        # argument vector, no shell
        try:
            result = subprocess.run(
                [self.osascript, "-e", script],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ReminderScriptError(f"{self.osascript} not found - Reminders is only available on macOS") from e
        except subprocess.TimeoutExpired as e:
            raise ReminderScriptError(f"osascript timed out after {self.timeout}s") from e

        if result.returncode != 0:
            raise ReminderScriptError(result.stderr.strip() or f"osascript exited with {result.returncode}")
        if result.stderr:
            logger.warning("osascript_stderr", stderr=result.stderr.strip()[:500])
        return result.stdout.strip()

    def check_status(self) -> ReminderStatus:
        try:
            out = self._run('tell application "Reminders" to return name of lists')
        except ReminderScriptError as e:
            return ReminderStatus(available=False, error=str(e) or "Reminders app not accessible")
        lists = [name.strip() for name in out.split(", ") if name.strip()]
        return ReminderStatus(available=True, lists=lists)

    def create_reminder(self, request: ReminderRequest) -> ReminderResult:
        try:
            reminder_id = self._run(build_create_script(request))
        except ReminderScriptError as e:
            logger.error("reminder_create_failed", title=request.title[:80], error=str(e))
            return ReminderResult(success=False, error=str(e) or "Failed to create reminder")
        if not reminder_id:
            return ReminderResult(success=False, error="Reminders returned no reminder id")
        return ReminderResult(success=True, reminderId=reminder_id)


# ---------- Card push ----------

def push_card(store, client: RemindersClient, user_id: str, card_id: str, list_name: str) -> ReminderResult:
    """Push one card; the card's reminder is only updated when the push succeeds."""
    card = store.get_card(user_id, card_id)
    if card is None:
        raise NotFoundError("Card not found")

    if card.reminder and card.reminder.pushedToApple and card.reminder.appleReminderId:
        logger.info("reminder_already_pushed", card_id=card_id, reminder_id=card.reminder.appleReminderId)
        return ReminderResult(success=True, reminderId=card.reminder.appleReminderId)

    remind_at = card.reminder.remindAt if card.reminder else None
    result = client.create_reminder(ReminderRequest(
        title=card.title,
        notes=card.content,
        list_name=list_name,
        due_date=remind_at,
    ))
    if not result.success:
        return result

    now = utcnow()
    store.update_card(user_id, card_id, {
        "reminder": {
            "remindAt": remind_at or now,
            "pushedToApple": True,
            "appleReminderId": result.reminderId,
            "pushedAt": now,
        }
    })
    logger.info("reminder_pushed", user_id=user_id, card_id=card_id, reminder_id=result.reminderId)
    return result


def push_cards(store, client: RemindersClient, user_id: str, card_ids: list[str], list_name: str) -> BatchPushResult:
    results = []
    for card_id in card_ids:
        try:
            result = push_card(store, client, user_id, card_id, list_name)
        except NotFoundError as e:
            results.append(BatchPushItem(cardId=card_id, success=False, error=str(e)))
            continue
        results.append(BatchPushItem(cardId=card_id, success=result.success,
                                     reminderId=result.reminderId, error=result.error))

    pushed = sum(1 for r in results if r.success)
    return BatchPushResult(
        message=f"Pushed {pushed} of {len(card_ids)} reminders",
        pushed=pushed,
        total=len(card_ids),
        results=results,
    )

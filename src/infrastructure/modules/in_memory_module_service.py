import itertools
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Tuple

from src.core.interfaces.module_service import ModuleService, ModuleWriteResult


class InMemoryModuleService(ModuleService):
    """
    Dictionary-backed stand-in for a business module's write path.
    Used by the dev runner and tests. Operations are dispatched to
    `_op_<operation>` methods; every call is recorded in `calls`.
    """

    module = ""

    def __init__(self):
        self.records: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, Dict[str, Any], str]] = []
        self._ids = itertools.count(1)
        self._lock = Lock()

    def execute(self, operation: str, parameters: Mapping[str, Any], acting_user_id: str) -> ModuleWriteResult:
        handler: Callable = getattr(self, f"_op_{operation}", None)
        if handler is None:
            return ModuleWriteResult(success=False, error=f"{self.module} does not implement {operation}")
        params = dict(parameters)
        with self._lock:
            self.calls.append((operation, params, acting_user_id))
            try:
                data = handler(params, acting_user_id)
            except LookupError as e:
                return ModuleWriteResult(success=False, error=str(e.args[0]) if e.args else str(e))
        return ModuleWriteResult(success=True, data=data or {})

    def operations_called(self) -> List[str]:
        return [operation for operation, _, _ in self.calls]

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def _table(self, kind: str) -> Dict[str, Dict[str, Any]]:
        return self.records.setdefault(kind, {})

    def _insert(self, kind: str, prefix: str, **fields) -> str:
        record_id = self._new_id(prefix)
        self._table(kind)[record_id] = dict(fields, id=record_id)
        return record_id

    def _require(self, kind: str, record_id: str) -> Dict[str, Any]:
        record = self._table(kind).get(record_id)
        if record is None:
            raise LookupError(f"{kind} not found: {record_id}")
        return record

    def _remove(self, kind: str, record_id: str) -> Dict[str, Any]:
        self._require(kind, record_id)
        return self._table(kind).pop(record_id)


class InMemoryDriveService(InMemoryModuleService):
    module = "drive"

    def add_file(self, file_id: str, parent_id: str, owner_id: str = "") -> None:
        self._table("file")[file_id] = {"id": file_id, "parentId": parent_id, "ownerId": owner_id, "sharedWith": []}

    def _op_create_folder(self, params, user_id):
        folder_id = self._insert("folder", "folder", name=params["name"], parentId=params.get("parentId"), ownerId=user_id)
        return {"folderId": folder_id, "name": params["name"]}

    def _op_delete_folder(self, params, user_id):
        folder_id = params["folderId"]
        self._require("folder", folder_id)
        if params.get("onlyIfEmpty"):
            children = [
                record
                for kind in ("file", "folder")
                for record in self._table(kind).values()
                if record.get("parentId") == folder_id
            ]
            if children:
                raise LookupError(f"folder not empty: {folder_id}")
        self._remove("folder", folder_id)
        return {"folderId": folder_id, "deleted": True}

    def _op_get_file(self, params, user_id):
        record = self._require("file", params["fileId"])
        return {"fileId": record["id"], "parentId": record["parentId"]}

    def _op_move_file(self, params, user_id):
        record = self._require("file", params["fileId"])
        record["parentId"] = params["parentId"]
        return {"fileId": record["id"], "parentId": record["parentId"]}

    def _op_share_file(self, params, user_id):
        record = self._require("file", params["fileId"])
        for user in params["shareWith"]:
            if user not in record["sharedWith"]:
                record["sharedWith"].append(user)
        return {"fileId": record["id"], "sharedWith": list(record["sharedWith"])}

    def _op_unshare_file(self, params, user_id):
        record = self._require("file", params["fileId"])
        record["sharedWith"] = [u for u in record["sharedWith"] if u not in params["shareWith"]]
        return {"fileId": record["id"], "sharedWith": list(record["sharedWith"])}

    def _op_organize_files(self, params, user_id):
        moved = [f for f in self._table("file").values() if f["parentId"] == params["source"]]
        target = params.get("target")
        if target:
            for record in moved:
                record["parentId"] = target
        return {"organized": len(moved)}


class InMemoryChatService(InMemoryModuleService):
    module = "chat"

    def _op_send_message(self, params, user_id):
        message_id = self._insert("message", "msg", conversationId=params["conversationId"],
                                  content=params["content"], senderId=user_id)
        return {"messageId": message_id, "conversationId": params["conversationId"]}

    def _op_create_conversation(self, params, user_id):
        participants = sorted(set(params["participants"]) | {user_id})
        conversation_id = self._insert("conversation", "conv", participants=participants)
        return {"conversationId": conversation_id, "participants": participants}

    def _op_schedule_message(self, params, user_id):
        message_id = self._insert("scheduled", "sched", conversationId=params["conversationId"],
                                  content=params["content"], sendAt=params["sendAt"], senderId=user_id)
        return {"messageId": message_id, "sendAt": params["sendAt"]}

    def _op_cancel_scheduled_message(self, params, user_id):
        self._remove("scheduled", params["messageId"])
        return {"messageId": params["messageId"], "cancelled": True}

    def _op_respond_to_message(self, params, user_id):
        original = self._require("message", params["messageId"])
        message_id = self._insert("message", "msg", conversationId=original["conversationId"],
                                  content=params["content"], senderId=user_id, replyTo=original["id"])
        return {"messageId": message_id, "replyTo": original["id"]}


class InMemoryCalendarService(InMemoryModuleService):
    module = "calendar"

    def _op_create_event(self, params, user_id):
        event_id = self._insert("event", "evt", title=params["title"], startTime=params["startTime"],
                                endTime=params.get("endTime"), ownerId=user_id)
        return {"eventId": event_id, "title": params["title"]}

    def _op_update_event(self, params, user_id):
        record = self._require("event", params["eventId"])
        record.update({k: v for k, v in params.items() if k != "eventId"})
        return {"eventId": record["id"]}

    def _op_delete_event(self, params, user_id):
        self._remove("event", params["eventId"])
        return {"eventId": params["eventId"], "deleted": True}


class InMemoryTasksService(InMemoryModuleService):
    module = "tasks"

    def _op_create_task(self, params, user_id):
        task_id = self._insert("task", "task", title=params["title"],
                               priority=params.get("priority", "medium"), ownerId=user_id)
        return {"taskId": task_id, "title": params["title"]}

    def _op_get_task(self, params, user_id):
        record = self._require("task", params["taskId"])
        return {"taskId": record["id"], "priority": record["priority"]}

    def _op_delete_task(self, params, user_id):
        self._remove("task", params["taskId"])
        return {"taskId": params["taskId"], "deleted": True}

    def _op_update_task_priority(self, params, user_id):
        if "suggestions" in params:
            updated = []
            for suggestion in params["suggestions"]:
                record = self._require("task", suggestion["taskId"])
                record["priority"] = suggestion["newPriority"]
                updated.append(record["id"])
            return {"updated": updated}
        record = self._require("task", params["taskId"])
        record["priority"] = params["newPriority"]
        return {"taskId": record["id"], "priority": record["priority"]}


class InMemoryHrService(InMemoryModuleService):
    module = "hr"

    def _op_clock_in(self, params, user_id):
        entry_id = self._insert("time_entry", "entry", employeeId=params["employeeId"], open=True)
        return {"timeEntryId": entry_id, "employeeId": params["employeeId"]}

    def _op_clock_out(self, params, user_id):
        open_entries = [e for e in self._table("time_entry").values()
                        if e["employeeId"] == params["employeeId"] and e["open"]]
        if not open_entries:
            raise LookupError(f"no open time entry for {params['employeeId']}")
        open_entries[-1]["open"] = False
        return {"timeEntryId": open_entries[-1]["id"]}

    def _op_void_time_entry(self, params, user_id):
        self._remove("time_entry", params["timeEntryId"])
        return {"timeEntryId": params["timeEntryId"], "voided": True}

    def _op_request_time_off(self, params, user_id):
        request_id = self._insert("time_off", "pto", employeeId=params["employeeId"],
                                  startDate=params["startDate"], endDate=params["endDate"])
        return {"requestId": request_id}

    def _op_cancel_time_off(self, params, user_id):
        self._remove("time_off", params["requestId"])
        return {"requestId": params["requestId"], "cancelled": True}


class InMemorySchedulingService(InMemoryModuleService):
    module = "scheduling"

    def _op_generate_schedule(self, params, user_id):
        return {"scheduleId": params["scheduleId"], "businessId": params["businessId"], "generated": True}

    def _op_suggest_assignments(self, params, user_id):
        return {"shiftId": params["shiftId"], "suggestions": []}

    def _op_assign_shift(self, params, user_id):
        key = f"{params['shiftId']}:{params['employeeId']}"
        self._table("assignment")[key] = {"shiftId": params["shiftId"], "employeeId": params["employeeId"]}
        return {"shiftId": params["shiftId"], "employeeId": params["employeeId"]}

    def _op_unassign_shift(self, params, user_id):
        self._remove("assignment", f"{params['shiftId']}:{params['employeeId']}")
        return {"shiftId": params["shiftId"], "employeeId": params["employeeId"], "unassigned": True}

    def _op_publish_schedule(self, params, user_id):
        return {"scheduleId": params["scheduleId"], "published": True}


class InMemoryNotificationsService(InMemoryModuleService):
    module = "notifications"

    def _op_send_notification(self, params, user_id):
        notification_id = self._insert("notification", "notif", recipientId=params["recipientId"],
                                       message=params["message"])
        return {"notificationId": notification_id}

    def _op_schedule_reminder(self, params, user_id):
        reminder_id = self._insert("reminder", "rem", message=params["message"],
                                   remindAt=params["remindAt"], userId=params.get("userId", user_id))
        return {"reminderId": reminder_id, "remindAt": params["remindAt"]}

    def _op_cancel_reminder(self, params, user_id):
        self._remove("reminder", params["reminderId"])
        return {"reminderId": params["reminderId"], "cancelled": True}


def build_in_memory_services() -> Dict[str, InMemoryModuleService]:
    return {
        service.module: service
        for service in (
            InMemoryDriveService(),
            InMemoryChatService(),
            InMemoryCalendarService(),
            InMemoryTasksService(),
            InMemoryHrService(),
            InMemorySchedulingService(),
            InMemoryNotificationsService(),
        )
    }

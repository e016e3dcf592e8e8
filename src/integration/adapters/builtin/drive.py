from typing import Any, Dict

from src.core.domain.user_context import UserContext
from src.integration.adapters.base import BuiltinModuleExecutor, OperationSpec


class DriveExecutor(BuiltinModuleExecutor):
    module_key = "drive"
    operations = {
        "create_folder": OperationSpec(required=("name",)),
        "delete_folder": OperationSpec(required=("folderId",)),
        "move_file": OperationSpec(required=("fileId", "parentId")),
        "share_file": OperationSpec(required=("fileId", "shareWith")),
        "unshare_file": OperationSpec(required=("fileId", "shareWith")),
        "organize_files": OperationSpec(required=("source",)),
    }

    def capture(self, operation: str, parameters: Dict[str, Any], user_context: UserContext) -> Dict[str, Any]:
        if operation != "move_file":
            return {}
        current = self._read("get_file", {"fileId": parameters["fileId"]}, user_context)
        if "parentId" not in current:
            return {}
        return {"previousParentId": current["parentId"]}

# deploy_service/crud/__init__.py
from .deploys import (
    append_history,
    create_deploy,
    get_commands,
    get_deploy,
    get_history,
    list_deploys,
    list_unfinished_deploys,
    resolve_target_path,
    set_deploy_status,
    update_command_status,
)

__all__ = [
    "create_deploy",
    "get_deploy",
    "list_deploys",
    "list_unfinished_deploys",
    "get_history",
    "get_commands",
    "update_command_status",
    "append_history",
    "set_deploy_status",
    "resolve_target_path",
]

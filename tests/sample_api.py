"""Small API definition used by the test-suite (loaded by file reference in CLI tests)."""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from ontlock import define_api, field_from, identity_context

HERE = Path(__file__).resolve()


class CurrentUser(BaseModel):
    id: str
    email: str


class UserStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class User(BaseModel):
    id: str
    name: str
    status: UserStatus
    email: Optional[str] = None


class StatusOption(BaseModel):
    value: str
    label: str


class NoInputs(BaseModel):
    pass


class GetUserInputs(BaseModel):
    user_id: str = Field(..., min_length=1, description="User ID")


class EditUserInputs(BaseModel):
    user_id: str
    name: str = Field(..., max_length=100)
    status: Optional[field_from("listStatuses")] = None
    tags: List[str] = Field(default_factory=list)
    editor: identity_context(CurrentUser)


def get_user(inputs):
    return {"id": inputs["user_id"], "name": "Ada", "status": "active"}


def list_statuses(inputs):
    return [{"value": s.value, "label": s.value.title()} for s in UserStatus]


def edit_user(inputs):
    return {"id": inputs["user_id"], "name": inputs["name"], "status": "active"}


def base_config() -> dict:
    """Fresh definition config; tests mutate the copy they get."""
    return {
        "name": "sample-api",
        "environments": {"dev": {"debug": True}, "prod": {"debug": False}},
        "access_groups": {
            "public": {"description": "Unauthenticated users"},
            "admin": {"description": "Administrators"},
        },
        "entities": {
            "User": {"description": "A user account"},
        },
        "functions": {
            "getUser": {
                "description": "Get a user by ID",
                "access": ["admin"],
                "entities": ["User"],
                "inputs": GetUserInputs,
                "outputs": User,
                "resolver": f"{HERE}:get_user",
            },
            "listStatuses": {
                "description": "Valid user statuses",
                "access": ["public", "admin"],
                "inputs": NoInputs,
                "outputs": List[StatusOption],
                "resolver": f"{HERE}:list_statuses",
            },
            "editUser": {
                "description": "Edit a user",
                "access": ["admin"],
                "entities": ["User"],
                "inputs": EditUserInputs,
                "outputs": User,
                "resolver": f"{HERE}:edit_user",
            },
        },
    }


def build_api(**overrides):
    config = base_config()
    config.update(overrides)
    return define_api(**config)


api = build_api()


def api_with_support_group():
    """Same API with an extra, unused access group."""
    config = base_config()
    config["access_groups"]["support"] = {"description": "Support staff"}
    return define_api(**config)


def api_with_support_access():
    """getUser opened to the support group."""
    config = base_config()
    config["access_groups"]["support"] = {"description": "Support staff"}
    config["functions"]["getUser"]["access"] = ["admin", "support"]
    return define_api(**config)

from __future__ import annotations
from typing import Type, TypeVar

from flask import current_app, request
from pydantic import BaseModel, ValidationError as PydanticValidationError

from config import Settings
from errors import from_pydantic

M = TypeVar("M", bound=BaseModel)


def get_settings() -> Settings:
    return current_app.extensions["settings"]


def get_mailer():
    return current_app.extensions["mailer"]


def get_blob_store():
    return current_app.extensions["blob_store"]


def json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def parse_body(model: Type[M], payload: dict | None = None) -> M:
    try:
        return model.model_validate(json_body() if payload is None else payload)
    except PydanticValidationError as ve:
        raise from_pydantic(ve)

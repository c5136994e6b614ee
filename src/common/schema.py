"""Common schemas for the API."""

import typing as t

from ninja import Schema
from pydantic import StringConstraints

LocationTag = t.Annotated[str, StringConstraints(min_length=1, max_length=64, strip_whitespace=True)]


class VersionResponse(Schema):
    version: str
    demo: bool = False


class ResponseOk(Schema):
    status: t.Literal["ok"] = "ok"

"""Error body shared by every endpoint, used to document non-2xx responses."""

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None


__all__ = ["ErrorResponse"]

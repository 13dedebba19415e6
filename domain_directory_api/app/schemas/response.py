"""
Uniform response envelope for the domain routes.

Every service operation returns a :class:`RestResponse`; the endpoint
only renders it.  Failures always carry a human readable ``message``
and an HTTP status.  Domain lookups that fail answer ``401`` rather
than ``404`` so a domain server re-runs its identity negotiation
instead of treating the record as permanently gone.
"""

from typing import Any, Dict, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field


class RestResponse(BaseModel):
    success: bool = True
    data: Optional[Any] = None
    message: Optional[str] = None
    http_status: int = status.HTTP_200_OK
    additional_fields: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, data: Optional[Any] = None) -> "RestResponse":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, message: str, http_status: int = status.HTTP_400_BAD_REQUEST) -> "RestResponse":
        return cls(success=False, message=message, http_status=http_status)

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> "RestResponse":
        return cls.failure(message, status.HTTP_401_UNAUTHORIZED)

    def add_additional_field(self, name: str, value: Any) -> None:
        """Attach a top‑level field next to ``data`` (for legacy readers)."""
        self.additional_fields[name] = value

    def body(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "status": "failure", "message": self.message}
        content: Dict[str, Any] = {"success": True, "status": "success"}
        if self.data is not None:
            content["data"] = self.data
        for name, value in self.additional_fields.items():
            content.setdefault(name, value)
        return content

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.http_status, content=jsonable_encoder(self.body()))

from pydantic import BaseModel, ConfigDict, Field
from typing import Generic, TypeVar, Optional, Any, Dict, List, Union

from homecare.core.constants import NotificationTypeEnum

DataType = TypeVar("DataType")

class APIResponse(BaseModel, Generic[DataType]):
    """Generic API response model for consistent output."""
    message: str = Field(..., description="A human-readable message about the response.")
    data: Optional[DataType] = Field(None, description="The actual data returned by the API, if any.")

class Pagination(BaseModel):
    page: Optional[int] = None
    limit: Optional[int] = None
    total: Optional[int] = None
    total_pages: Optional[int] = Field(None, alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)

class BackendEnvelope(BaseModel):
    """Envelope every practice-backend endpoint wraps its payload in."""
    success: bool = True
    data: Any = None
    message: Optional[str] = None
    errors: Optional[List[Any]] = None
    error: Optional[Union[str, Dict[str, Any]]] = None
    pagination: Optional[Pagination] = None

    model_config = ConfigDict(extra="allow")

class Page(BaseModel, Generic[DataType]):
    items: List[DataType] = []
    pagination: Optional[Pagination] = None

class ErrorNotification(BaseModel):
    """User-facing toast content derived from an error."""
    title: str
    message: str
    type: NotificationTypeEnum = NotificationTypeEnum.ERROR
    duration: Optional[int] = None

class ErrorDetail(BaseModel):
    """Standardized error detail model."""
    code: str = Field(..., description="Error code for client handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: ErrorDetail = Field(..., description="Error details")
    timestamp: str = Field(..., description="ISO 8601 timestamp of error")
    path: str = Field(..., description="Request path that caused the error")
    request_id: Optional[str] = Field(None, description="Unique request identifier for debugging")

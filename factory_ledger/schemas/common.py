from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Response wrapper shared by every JSON endpoint."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str
    errors: Optional[List[str]] = None

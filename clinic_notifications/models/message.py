from pydantic import BaseModel
from typing import Any, Dict, Optional


class NotificationMessage(BaseModel):
    """Rendered message handed to a channel provider"""
    recipient: str
    content: str
    subject: Optional[str] = None


class NotificationResult(BaseModel):
    success: bool
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider_payload: Optional[Dict[str, Any]] = None
    # False for faults that a later attempt cannot fix (bad recipient, missing credentials)
    retryable: bool = True

    @classmethod
    def failure(cls, error_message: str, retryable: bool = True, payload: Optional[Dict[str, Any]] = None):
        return cls(success=False, error_message=error_message, retryable=retryable, provider_payload=payload)

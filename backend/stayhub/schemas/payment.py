"""
Pydantic schemas for payment webhooks.
"""

from typing import Optional

from pydantic import BaseModel


class WebhookAck(BaseModel):
    received: bool = True
    booking_id: Optional[str] = None
    status: Optional[str] = None

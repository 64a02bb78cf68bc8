from pydantic import BaseModel


class SubscriptionResponse(BaseModel):
    """Schema for subscribe/unsubscribe responses."""
    collection_id: int
    subscribed: bool
    changed: bool

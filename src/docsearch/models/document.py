"""Document models — The canonical shape of an indexable record.

``Document`` only fixes the identifier; any other field is accepted as an
extra attribute.  Schemas with typed fields (numbers, timestamps) subclass it
so that decoding restores the declared Python types.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """One indexable record addressed by ``id`` within an index.

    Instances are frozen: the identifier cannot be reassigned, and the client
    never mutates a held document.  Partial updates go through
    ``SearchClient.update_document`` and return nothing but a write result.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: int | str = Field(description="Unique document identifier within its index")

    def field_values(self) -> dict[str, Any]:
        """Return every field except ``id`` as a plain dict."""
        data = dict(self)
        data.pop("id", None)
        return data


class ProductDocument(Document):
    """A product listing, as indexed by the walkthrough demo."""

    id: int = Field(description="Product id, also used as the document id")
    seller_id: str = Field(default="", description="Seller UUID")
    name: str = Field(default="", description="Product name")
    category: str = Field(default="", description="Product category")
    quantity: int = Field(default=0, description="Units in stock")
    price: float = Field(default=0.0, description="Unit price")
    weight: int = Field(default=0, description="Weight in grams")
    size: str = Field(default="", description="Size label, e.g. 'XXL'")
    status: str = Field(default="", description="Availability status")
    description: str = Field(default="", description="Free-text description")
    created_at: datetime | None = Field(default=None, description="Creation timestamp (unset if absent)")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp (unset if absent)")

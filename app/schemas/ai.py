from __future__ import annotations

from pydantic import BaseModel, Field

from app.schemas.common import PortalModel
from app.schemas.hosting import Product


class CatalogEntry(BaseModel):
    pid: str = Field(description="The unique product ID.")
    name: str = Field(description="The name of the product.")
    description: str = Field(description="The HTML description of the product.")


class HostingRecommendation(PortalModel):
    """Structured output of the product recommender."""

    recommended_product_id: str = Field(
        description="The product ID (pid) of the hosting plan that is the best fit for the user."
    )
    justification: str = Field(
        description=(
            "A friendly, single-paragraph explanation of why this product was "
            "recommended, tailored to the user's project description."
        )
    )


class ClientSummary(PortalModel):
    """Structured output of the account summarizer."""

    summary: str = Field(
        description="A brief, friendly, one-sentence summary of the client's current services."
    )
    upsell_suggestion: str = Field(
        description=(
            "A friendly, single-sentence suggestion for a service the client might be "
            "interested in, or a thankful message if they already have every product."
        )
    )


class RecommendRequest(PortalModel):
    project_description: str | None = None
    gid: str | None = None


class RecommendResponse(PortalModel):
    recommendation: HostingRecommendation
    product: Product
    cart_url: str


class SummaryResponse(PortalModel):
    summary: str
    upsell_suggestion: str

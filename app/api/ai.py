import asyncio

from fastapi import APIRouter, Depends

from app.api.deps import get_backend, get_text_model, require_account
from app.schemas.ai import CatalogEntry, RecommendRequest, RecommendResponse, SummaryResponse
from app.services import ai_helpers, billing_proxy
from app.services.ai_helpers import TextModel
from app.services.whmcs import BillingBackend

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/recommend", response_model=RecommendResponse)
async def recommend(
    payload: RecommendRequest,
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
    model: TextModel = Depends(get_text_model),
):
    products = await billing_proxy.catalog.products(backend, payload.gid)
    catalog = [
        CatalogEntry(pid=p.pid, name=p.name, description=p.description) for p in products
    ]
    recommendation = await ai_helpers.recommend_product(
        model, payload.project_description, catalog
    )
    product = next(p for p in products if p.pid == recommendation.recommended_product_id)
    return RecommendResponse(
        recommendation=recommendation,
        product=product,
        cart_url=billing_proxy.cart_url(product.pid),
    )


@router.get("/summary", response_model=SummaryResponse)
async def summary(
    account_id: str = Depends(require_account),
    backend: BillingBackend = Depends(get_backend),
    model: TextModel = Depends(get_text_model),
):
    services, products = await asyncio.gather(
        billing_proxy.services.list(backend, account_id),
        billing_proxy.catalog.products(backend),
    )
    result = await ai_helpers.summarize_account(
        model, [s.name for s in services], [p.name for p in products]
    )
    return SummaryResponse(summary=result.summary, upsell_suggestion=result.upsell_suggestion)

"""Generative helpers: hosting plan recommendation and account summary.

Both helpers ask the model for JSON matching a pydantic schema and validate
the answer; anything that does not validate is a downstream failure rather
than a half-filled result.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from google import genai
from google.genai import types
from jinja2 import Environment, StrictUndefined
from pydantic import BaseModel, ValidationError

from app.config import settings
from app.errors import DownstreamFailure, ValidationFailed
from app.metrics import observe_ai_call
from app.schemas.ai import CatalogEntry, ClientSummary, HostingRecommendation

logger = logging.getLogger(__name__)

WELCOME_SUMMARY = ClientSummary(
    summary="Welcome! It looks like you're ready to start your next project with us.",
    upsell_suggestion="You can start by ordering a new service or registering a domain.",
)

_prompts = Environment(undefined=StrictUndefined, autoescape=False, trim_blocks=True)

RECOMMEND_PROMPT = _prompts.from_string(
    """You are an expert hosting advisor for a web hosting company. Your goal is to help a potential customer choose the best hosting plan for their needs.
Analyze the user's project description and the list of available products with their names and descriptions.

**User's Project Description:**
"{{ project_description }}"

**Available Hosting Products:**
{% for product in products %}
---
Product ID (pid): {{ product.pid }}
Product Name: {{ product.name }}
Description:
{{ product.description }}
---
{% endfor %}

**Your Task:**
1.  Read the user's description carefully to understand their needs (e.g., e-commerce, portfolio, blog, traffic expectations, technical skill).
2.  Review all available products. Match the user's needs to the product that is the best fit.
3.  Select exactly one product to recommend.
4.  Provide the chosen product's ID in the 'recommendedProductId' field.
5.  Write a friendly, single-paragraph justification for your choice. Explain in simple terms why that specific plan is a good match for their project.

Provide your response in the requested JSON format."""
)

SUMMARY_PROMPT = _prompts.from_string(
    """You are a helpful AI account manager for a hosting company.
Your goal is to provide a quick, personalized summary for a returning client based on their services.
Analyze the list of services the client currently has and the list of all available products.

Client's current services:
{% for name in client_services %}
- {{ name }}
{% endfor %}

All available products:
{% for name in all_products %}
- {{ name }}
{% endfor %}

Based on this information, do the following:
1.  **Summary**: Write a single, brief, friendly sentence summarizing what the client has.
2.  **Upsell Suggestion**: Identify a key service from the "all products" list that the client does NOT currently have and write a single, friendly sentence suggesting it. If the client already has every service listed in "all products", write a thankful message instead.

Provide your response in the requested JSON format."""
)


class TextModel(Protocol):
    async def generate_json(self, prompt: str, schema: type[BaseModel]) -> str: ...


class GeminiTextModel:
    """google-genai backed model answering in JSON mode."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.api_key = api_key or settings.gemini_api_key
        self.model = model or settings.gemini_model
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise DownstreamFailure("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate_json(self, prompt: str, schema: type[BaseModel]) -> str:
        client = self._get_client()
        response = await asyncio.to_thread(
            client.models.generate_content,
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
            ),
        )
        return response.text or ""


async def _generate(model: TextModel, helper: str, prompt: str, schema: type[BaseModel]):
    try:
        raw = await model.generate_json(prompt, schema)
        result = schema.model_validate_json(raw)
    except DownstreamFailure:
        observe_ai_call(helper, "error")
        raise
    except ValidationError as exc:
        observe_ai_call(helper, "invalid")
        logger.error("%s returned output that does not match its schema: %s", helper, exc)
        raise DownstreamFailure(f"{helper} returned malformed output") from exc
    except Exception as exc:
        observe_ai_call(helper, "error")
        logger.exception("%s model call failed", helper)
        raise DownstreamFailure(f"{helper} model call failed: {exc}") from exc
    observe_ai_call(helper, "success")
    return result


async def recommend_product(
    model: TextModel, project_description: str | None, catalog: list[CatalogEntry]
) -> HostingRecommendation:
    """Pick one catalog product for the project description.

    The model must answer with a pid from ``catalog``; any other id is a
    downstream failure, never a silent fallback.
    """
    description = (project_description or "").strip()
    if not description:
        raise ValidationFailed("Please describe your project.")
    if not catalog:
        raise ValidationFailed("No products are available to recommend.")

    prompt = RECOMMEND_PROMPT.render(project_description=description, products=catalog)
    recommendation = await _generate(model, "recommend_product", prompt, HostingRecommendation)

    known = {entry.pid for entry in catalog}
    if recommendation.recommended_product_id not in known:
        logger.error(
            "Recommender chose unknown product %s", recommendation.recommended_product_id
        )
        raise DownstreamFailure("The recommender chose a product outside the catalog")
    return recommendation


async def summarize_account(
    model: TextModel, client_services: list[str], all_products: list[str]
) -> ClientSummary:
    if not client_services:
        return WELCOME_SUMMARY
    prompt = SUMMARY_PROMPT.render(client_services=client_services, all_products=all_products)
    return await _generate(model, "summarize_account", prompt, ClientSummary)

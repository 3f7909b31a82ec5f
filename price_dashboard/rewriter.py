# price_dashboard/rewriter.py
from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from . import config
from .batch import propagate
from .errors import RewriteError
from .logger import log
from .models import BatchItem, BatchResult, DescriptionRecord, RewrittenContent
from .parsing import extract_json_object

DEFAULT_PROMPT = """You are a product copywriter. Rewrite the following product content to be more engaging, clear, and SEO-friendly while maintaining accuracy.

Product Name: {name}

Original Description:
{description}

Original Product Uses:
{productUses}

Please provide:
1. A rewritten description (2-3 concise paragraphs, plain text)
2. A rewritten product uses section - MUST be formatted as an HTML unordered list with line breaks after each item for proper spacing:
   <ul><li>Use 1</li><br><li>Use 2</li><br><li>Use 3</li></ul>

   IMPORTANT: Always include <br> after each </li> tag (except the last one) to ensure proper line spacing in the rendered output."""

DEFAULT_HTML_TITLE_RULES = """Generate an SEO-optimized HTML title tag:
- Maximum 60 characters
- Include the product name
- Put primary keyword near the beginning
- Make it compelling and click-worthy"""

DEFAULT_META_DESC_RULES = """Generate an SEO-optimized meta description:
- Maximum 155 characters
- Include a clear call-to-action
- Mention key product benefits
- Make it enticing for search results"""

RESPONSE_FORMAT = (
    'Format your response as JSON:\n'
    '{"rewrittenDescription": "...", "rewrittenProductUses": "...", '
    '"htmlTitle": "...", "metaDescription": "..."}'
)

GENERATE_USES_PLACEHOLDER = (
    "(No product uses provided - please generate appropriate product uses "
    "based on the description)"
)


def build_prompt(
    product: DescriptionRecord,
    main_prompt: Optional[str] = None,
    html_title_rules: Optional[str] = None,
    meta_desc_rules: Optional[str] = None,
    generate_uses_if_empty: bool = False,
) -> str:
    template = (
        f"{main_prompt or DEFAULT_PROMPT}\n\n"
        f"HTML Title Requirements:\n{html_title_rules or DEFAULT_HTML_TITLE_RULES}\n\n"
        f"Meta Description Requirements:\n{meta_desc_rules or DEFAULT_META_DESC_RULES}\n\n"
        f"{RESPONSE_FORMAT}"
    )

    uses = product.product_uses or ""
    if generate_uses_if_empty and not uses.strip():
        uses = GENERATE_USES_PLACEHOLDER

    return (
        template.replace("{name}", product.name or "")
        .replace("{description}", product.description or "")
        .replace("{productUses}", uses)
    )


def openai_generate(prompt: str) -> str:
    """Send one prompt through the shared OpenAI client."""
    if config.client is None:
        raise RuntimeError("OpenAI client not initialized. Call load_secrets() first.")

    resp = config.client.responses.create(
        model=config.OPENAI_MODEL,
        input=[{"role": "user", "content": prompt}],
    )
    return resp.output_text or ""


def parse_rewrite_response(raw_text: Optional[str]) -> RewrittenContent:
    if not raw_text or not raw_text.strip():
        raise RewriteError("LLM returned empty response")

    data = extract_json_object(raw_text)
    if data is None:
        log(
            "no JSON found in LLM response",
            context="rewrite",
            extra={"preview": raw_text[:300]},
            level="error",
        )
        raise RewriteError("Failed to parse LLM response as JSON")
    return RewrittenContent.from_dict(data)


def rewrite_product(
    product: DescriptionRecord,
    generate: Callable[[str], str] = openai_generate,
    **prompt_options,
) -> RewrittenContent:
    prompt = build_prompt(product, **prompt_options)
    log(f"rewrite start sku={product.key}", context="rewrite")

    content = parse_rewrite_response(generate(prompt))

    log(
        f"rewrite complete sku={product.key}",
        context="rewrite",
        level="success",
        extra={
            "hasDescription": bool(content.rewritten_description),
            "hasUses": bool(content.rewritten_product_uses),
            "hasHtmlTitle": bool(content.html_title),
            "hasMetaDesc": bool(content.meta_description),
        },
    )
    return content


def rewrite_products(
    products: Sequence[DescriptionRecord],
    generate: Callable[[str], str] = openai_generate,
    **prompt_options,
) -> List[BatchResult]:
    """
    Rewrite products one at a time. A bad or empty model answer fails only
    that SKU; successful results carry the RewrittenContent as `detail`.
    """
    items = [BatchItem(key=p.key, payload={"product": p}) for p in products]
    return propagate(
        items,
        lambda item, _session: rewrite_product(item.payload["product"], generate, **prompt_options),
        context="rewrite",
    )

import logging
from typing import Iterable, Optional, Tuple

from .types import Cost, ModelInfo, TieredPricing

logger = logging.getLogger(__name__)


def find_model(models: Iterable[ModelInfo], model: Optional[str]) -> Optional[ModelInfo]:
    """Exact, case-sensitive lookup of a model id."""
    for info in models:
        if info.model == model:
            return info
    return None


def calculate_cost(
    models: Iterable[ModelInfo],
    model: Optional[str],
    input_tokens: int,
    output_tokens: int,
    *,
    usd_to_krw: float,
) -> Cost:
    """
    Convert token usage into cost.

    Args:
        models: Model descriptors of the adapter that served the call.
        model: Model id used for the call.
        input_tokens: Prompt tokens billed.
        output_tokens: Generated tokens billed.
        usd_to_krw: Exchange rate for the KRW total.

    Returns:
        Cost: The priced record, or ``Cost.zero()`` when the model is unknown
        or carries no pricing. Never raises for unknown models.
    """
    info = find_model(models, model)
    if info is None:
        logger.debug("model not found: %s", model)
        return Cost.zero()

    if info.tiered_pricing is not None:
        input_cost, output_cost = info.tiered_pricing(input_tokens, output_tokens)
    elif info.input_token_price is not None and info.output_token_price is not None:
        input_cost = info.input_token_price * input_tokens
        output_cost = info.output_token_price * output_tokens
    else:
        logger.debug("model has no pricing: %s", model)
        return Cost.zero()

    total_cost_usd = input_cost + output_cost
    return Cost(
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost_usd=total_cost_usd,
        total_cost_krw=total_cost_usd * usd_to_krw,
        model=info.model,
    )


def tiered_pricing(
    threshold: int,
    base: Tuple[float, float],
    above: Tuple[float, float],
) -> TieredPricing:
    """
    Build a two-tier pricing function keyed on the prompt size.

    When ``input_tokens`` exceeds ``threshold`` both the input and the output
    unit price switch to the ``above`` tier.

    Args:
        threshold: Largest prompt size billed at the base tier.
        base: (input_price, output_price) per token up to the threshold.
        above: (input_price, output_price) per token above the threshold.
    """
    def price(input_tokens: int, output_tokens: int) -> Tuple[float, float]:
        input_price, output_price = above if input_tokens > threshold else base
        return input_tokens * input_price, output_tokens * output_price

    return price

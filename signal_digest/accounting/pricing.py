"""Per-model token pricing.

Costs are a pure function of provider, model and token counts. Prices are
USD per million tokens and kept as Decimal end to end.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

logger = logging.getLogger(__name__)

_PER_MILLION = Decimal(1_000_000)
_QUANTUM = Decimal("0.000001")


@dataclass(frozen=True)
class ModelPrice:
    input_per_million: Decimal
    output_per_million: Decimal


DEFAULT_PRICES: dict[tuple[str, str], ModelPrice] = {
    ("headline", "headline-digest"): ModelPrice(Decimal("0"), Decimal("0")),
    ("gemini", "gemini-2.5-flash"): ModelPrice(Decimal("0.30"), Decimal("2.50")),
    ("gemini", "gemini-2.5-pro"): ModelPrice(Decimal("1.25"), Decimal("10.00")),
    ("openai", "gpt-4o-mini"): ModelPrice(Decimal("0.15"), Decimal("0.60")),
    ("openai", "gpt-4o"): ModelPrice(Decimal("2.50"), Decimal("10.00")),
    ("anthropic", "claude-sonnet-4-5"): ModelPrice(Decimal("3.00"), Decimal("15.00")),
    ("anthropic", "claude-haiku-4-5"): ModelPrice(Decimal("1.00"), Decimal("5.00")),
}


class PricingTable:
    """
    Lookup of (provider, model) -> per-million-token prices.

    A model missing from the table falls back to the provider's ``"*"``
    entry if present, otherwise it costs zero and a warning is logged.
    """

    def __init__(self, prices: dict[tuple[str, str], ModelPrice] | None = None):
        self._prices = dict(DEFAULT_PRICES if prices is None else prices)

    def price_for(self, provider: str, model: str) -> ModelPrice | None:
        return self._prices.get((provider, model)) or self._prices.get((provider, "*"))

    def cost(
        self,
        provider: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
    ) -> Decimal:
        """USD cost of one call, rounded to six decimal places."""
        price = self.price_for(provider, model)
        if price is None:
            logger.warning(f"No price for {provider}/{model}, recording zero cost")
            return Decimal("0").quantize(_QUANTUM)

        total = (
            Decimal(input_tokens) * price.input_per_million
            + Decimal(output_tokens) * price.output_per_million
        ) / _PER_MILLION
        return total.quantize(_QUANTUM, rounding=ROUND_HALF_UP)

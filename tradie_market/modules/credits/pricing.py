"""Application credit cost calculation.

Every place that shows or charges an application cost goes through
:class:`CreditCostCalculator`, so a quote and the later debit always agree.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional

from tradie_market.core.config import PricingSettings

DEFAULT_MULTIPLIER = Decimal("1.0")


@dataclass(slots=True, frozen=True)
class CreditCostQuote:
    job_type: str
    urgency_level: str
    base_cost: int
    urgency_multiplier: Decimal
    job_type_multiplier: Decimal
    final_cost: int

    def breakdown(self) -> list[str]:
        return [
            f"Base cost: {self.base_cost} credits",
            f"Urgency multiplier ({self.urgency_level}): {self.urgency_multiplier}x",
            f"Job type multiplier ({self.job_type}): {self.job_type_multiplier}x",
        ]


def _normalise(value: Optional[str]) -> str:
    return (value or "").strip().lower()


@dataclass(slots=True, frozen=True)
class CreditCostCalculator:
    base_cost: int = 2
    urgency_multipliers: Mapping[str, float] = field(default_factory=dict)
    job_type_multipliers: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: PricingSettings) -> "CreditCostCalculator":
        return cls(
            base_cost=settings.base_application_cost,
            urgency_multipliers=dict(settings.urgency_multipliers),
            job_type_multipliers=dict(settings.job_type_multipliers),
        )

    def urgency_multiplier(self, urgency_level: Optional[str]) -> Decimal:
        return self._lookup(self.urgency_multipliers, urgency_level)

    def job_type_multiplier(self, job_type: Optional[str]) -> Decimal:
        return self._lookup(self.job_type_multipliers, job_type)

    def quote(self, job_type: Optional[str], urgency_level: Optional[str]) -> CreditCostQuote:
        urgency = self.urgency_multiplier(urgency_level)
        job = self.job_type_multiplier(job_type)
        # Decimal keeps e.g. 2 * 1.2 * 1.5 exact before rounding up.
        final_cost = math.ceil(Decimal(self.base_cost) * urgency * job)
        return CreditCostQuote(
            job_type=_normalise(job_type),
            urgency_level=_normalise(urgency_level),
            base_cost=self.base_cost,
            urgency_multiplier=urgency,
            job_type_multiplier=job,
            final_cost=int(final_cost),
        )

    def cost(self, job_type: Optional[str], urgency_level: Optional[str]) -> int:
        return self.quote(job_type, urgency_level).final_cost

    @staticmethod
    def _lookup(table: Mapping[str, float], key: Optional[str]) -> Decimal:
        value = table.get(_normalise(key))
        if value is None:
            return DEFAULT_MULTIPLIER
        return Decimal(str(value))

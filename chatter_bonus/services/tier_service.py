from dataclasses import dataclass
from typing import Iterable

from chatter_bonus.errors import InvalidTierConfiguration


@dataclass(frozen=True)
class Tier:
    min_amount_cents: int
    bonus_cents: int


@dataclass(frozen=True)
class ResolvedTier:
    tier_index: int
    min_amount_cents: int
    bonus_cents: int
    steps: int

    def as_dict(self) -> dict:
        return {
            "tierIndex": self.tier_index,
            "minAmountCents": self.min_amount_cents,
            "bonusCents": self.bonus_cents,
            "steps": self.steps,
        }


def tiers_from_config(config: dict | None) -> list[Tier]:
    items = (config or {}).get("tiers") or []
    try:
        return [Tier(int(t["min_amount_cents"]), int(t["bonus_cents"])) for t in items]
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidTierConfiguration("Stored tiers are malformed", field="tiers") from e


def canonical_tiers(tiers: Iterable[Tier]) -> list[Tier]:
    """Sort ascending by minimum; on a duplicate minimum the larger bonus wins."""
    best: dict[int, int] = {}
    for t in tiers:
        current = best.get(t.min_amount_cents)
        if current is None or t.bonus_cents > current:
            best[t.min_amount_cents] = t.bonus_cents
    return [Tier(m, best[m]) for m in sorted(best)]


def resolve_tier(total_cents: int, tiers: Iterable[Tier]) -> ResolvedTier | None:
    """
    Highest tier whose minimum is reached by ``total_cents``.

    ``steps`` counts the paying tiers (bonus > 0) up to and including the
    resolved one, so a zero floor tier such as ``{0, 0}`` is step 0.
    """
    ordered = canonical_tiers(tiers)

    resolved = None
    steps = 0
    for index, tier in enumerate(ordered):
        if tier.min_amount_cents > total_cents:
            break
        if tier.bonus_cents > 0:
            steps += 1
        resolved = ResolvedTier(
            tier_index=index,
            min_amount_cents=tier.min_amount_cents,
            bonus_cents=tier.bonus_cents,
            steps=steps,
        )
    return resolved



def bonus_for_steps(steps: int, tiers: Iterable[Tier]) -> int:
    """Bonus of the ``steps``-th paying tier; 0 for no steps, capped at the top paying tier."""
    paying = [t.bonus_cents for t in canonical_tiers(tiers) if t.bonus_cents > 0]
    if steps <= 0 or not paying:
        return 0
    return paying[min(steps, len(paying)) - 1]

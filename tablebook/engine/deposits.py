"""Deposit policy evaluation"""

from datetime import date

from tablebook.schemas.settings import DepositInfo, RestaurantConfig


def evaluate_deposit(config: RestaurantConfig, day: date, party_size: int) -> DepositInfo:
    """Decide whether a request needs a deposit or hold, and how much

    Pure function of its inputs so the same answer comes back at request
    time and when the charge is re-verified later.
    """
    if not config.deposit_enabled:
        return DepositInfo(
            required=False,
            amount=0,
            min_party=config.deposit_min_party_size,
            type=config.deposit_type,
            source="none",
        )

    for rule in config.special_deposit_rules:
        if not rule.matches(day, party_size):
            continue
        required = rule.requires_deposit and rule.amount > 0
        return DepositInfo(
            required=required,
            amount=rule.amount if required else 0,
            min_party=rule.min_party_size or 1,
            type=config.deposit_type,
            source="special",
            label=rule.label or None,
            message=rule.message or config.deposit_message,
        )

    required = party_size >= config.deposit_min_party_size and config.deposit_amount > 0
    return DepositInfo(
        required=required,
        amount=config.deposit_amount if required else 0,
        min_party=config.deposit_min_party_size,
        type=config.deposit_type,
        source="global",
        message=config.deposit_message if required else None,
    )

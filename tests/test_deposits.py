"""Tests for deposit policy evaluation"""

from datetime import date

from tablebook.engine.deposits import evaluate_deposit
from tablebook.schemas.settings import DepositType

from conftest import make_config

FRIDAY = date(2026, 6, 5)
NEW_YEARS_EVE = date(2026, 12, 31)


def test_global_rule_uses_minimum_party_size():
    config = make_config(deposit_enabled=True, deposit_min_party_size=6, deposit_amount=5000)

    small = evaluate_deposit(config, FRIDAY, 4)
    assert small.required is False
    assert small.amount == 0

    large = evaluate_deposit(config, FRIDAY, 8)
    assert large.required is True
    assert large.amount == 5000
    assert large.source == "global"
    assert large.min_party == 6


def test_disabled_deposits_are_never_required():
    config = make_config(deposit_enabled=False, deposit_min_party_size=1, deposit_amount=5000)

    info = evaluate_deposit(config, FRIDAY, 8)
    assert info.required is False
    assert info.source == "none"


def test_zero_amount_is_not_required():
    config = make_config(deposit_enabled=True, deposit_min_party_size=1, deposit_amount=0)

    assert evaluate_deposit(config, FRIDAY, 8).required is False


def test_first_matching_special_rule_wins():
    config = make_config(
        deposit_enabled=True,
        deposit_type="deposit",
        deposit_min_party_size=6,
        deposit_amount=5000,
        special_deposit_rules=[
            {
                "label": "New Year's Eve",
                "start_date": "2026-12-31",
                "end_date": "2026-12-31",
                "amount": 10000,
            },
            {"label": "Large parties", "min_party_size": 2, "amount": 2500},
        ],
    )

    holiday = evaluate_deposit(config, NEW_YEARS_EVE, 2)
    assert holiday.required is True
    assert holiday.amount == 10000
    assert holiday.source == "special"
    assert holiday.label == "New Year's Eve"
    assert holiday.type == DepositType.DEPOSIT

    regular = evaluate_deposit(config, FRIDAY, 4)
    assert regular.amount == 2500
    assert regular.label == "Large parties"

    # Neither rule matches a single diner outside the holiday
    single = evaluate_deposit(config, FRIDAY, 1)
    assert single.source == "global"
    assert single.required is False


def test_special_rule_can_waive_deposit():
    config = make_config(
        deposit_enabled=True,
        deposit_min_party_size=1,
        deposit_amount=5000,
        special_deposit_rules=[{"label": "Soft opening", "end_date": "2026-06-30", "requires_deposit": False}],
    )

    waived = evaluate_deposit(config, FRIDAY, 6)
    assert waived.required is False
    assert waived.source == "special"
    assert evaluate_deposit(config, date(2026, 7, 3), 6).required is True


def test_disabled_special_rule_is_skipped():
    config = make_config(
        deposit_enabled=True,
        deposit_min_party_size=6,
        deposit_amount=5000,
        special_deposit_rules=[{"label": "Paused", "enabled": False, "amount": 9000}],
    )

    info = evaluate_deposit(config, FRIDAY, 8)
    assert info.source == "global"
    assert info.amount == 5000


def test_evaluation_is_repeatable():
    config = make_config(deposit_enabled=True, deposit_min_party_size=2, deposit_amount=3000)

    assert evaluate_deposit(config, FRIDAY, 4) == evaluate_deposit(config, FRIDAY, 4)

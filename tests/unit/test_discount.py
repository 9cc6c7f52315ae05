"""
Unit tests for discount descriptors and rule evaluation
(kymaclub/domain/discount.py)
"""

import pytest

from kymaclub.domain.discount import (
    DiscountRule,
    calculate_best_discount,
    create_time_based_discount,
    discount_patterns,
    does_rule_apply,
)

HOUR_MS = 60 * 60 * 1000
BOOKING_TIME = 1_760_000_000_000


def rule(rule_id, condition_type, value, hours=None, is_active=True, name=None):
    condition = {"type": condition_type}
    if hours is not None:
        condition["hours"] = hours
    return {
        "id": rule_id,
        "name": name or f"Rule {rule_id}",
        "condition": condition,
        "discount": {"type": "fixed_amount", "value": value},
        "isActive": is_active,
    }


def instance_starting_in(hours, **extra):
    return {"startTime": BOOKING_TIME + int(hours * HOUR_MS), **extra}


class TestDescriptors:
    """Tests for the descriptor builders."""

    def test_create_time_based_discount(self):
        assert create_time_based_discount("Promo", 12, "percentage", 0.1) == {
            "name": "Promo",
            "type": "time",
            "discountType": "percentage",
            "discountValue": 0.1,
            "timeFields": {"hoursBeforeStart": 12},
        }

    def test_values_are_not_validated(self):
        """Builders store whatever they are given."""
        descriptor = create_time_based_discount("Odd", -1, "percentage", 5)
        assert descriptor["timeFields"]["hoursBeforeStart"] == -1
        assert descriptor["discountValue"] == 5

    def test_early_bird_defaults(self):
        descriptor = discount_patterns.early_bird(0.2)
        assert descriptor["name"] == "Early Bird 20% Off"
        assert descriptor["timeFields"]["hoursBeforeStart"] == 48
        assert descriptor["discountType"] == "percentage"

    def test_last_minute_defaults(self):
        descriptor = discount_patterns.last_minute(0.25)
        assert descriptor["name"] == "Last Minute 25% Off"
        assert descriptor["timeFields"]["hoursBeforeStart"] == 2

    def test_percentage_name_is_rounded(self):
        assert discount_patterns.early_bird(0.15)["name"] == "Early Bird 15% Off"

    def test_fixed_amount(self):
        descriptor = discount_patterns.fixed_amount(5)
        assert descriptor["name"] == "24h Advance Booking - $5 Off"
        assert descriptor["discountType"] == "fixed_amount"
        assert descriptor["discountValue"] == 5

    def test_fixed_amount_fractional(self):
        descriptor = discount_patterns.fixed_amount(2.5, 36)
        assert descriptor["name"] == "36h Advance Booking - $2.5 Off"


class TestDoesRuleApply:
    """Tests for does_rule_apply()."""

    def test_hours_before_min(self):
        early = DiscountRule.from_dict(rule("a", "hours_before_min", 100, hours=48))
        assert does_rule_apply(early, 48) is True
        assert does_rule_apply(early, 47.9) is False

    def test_hours_before_max(self):
        late = DiscountRule.from_dict(rule("b", "hours_before_max", 100, hours=2))
        assert does_rule_apply(late, 0) is True
        assert does_rule_apply(late, 2) is True
        assert does_rule_apply(late, 2.5) is False

    def test_hours_before_max_not_after_start(self):
        """A class that already started gets no last-minute discount."""
        late = DiscountRule.from_dict(rule("b", "hours_before_max", 100, hours=2))
        assert does_rule_apply(late, -0.5) is False

    def test_always(self):
        always = DiscountRule.from_dict(rule("c", "always", 100))
        assert does_rule_apply(always, -10) is True

    def test_unknown_condition(self):
        odd = DiscountRule.from_dict(rule("d", "weekday", 100))
        assert does_rule_apply(odd, 10) is False


class TestCalculateBestDiscount:
    """Tests for calculate_best_discount()."""

    def test_no_rules(self):
        result = calculate_best_discount(instance_starting_in(10), {"price": 1500}, BOOKING_TIME)
        assert result == {"originalPrice": 1500, "finalPrice": 1500, "appliedDiscount": None}

    def test_default_price(self):
        result = calculate_best_discount(instance_starting_in(10), {}, BOOKING_TIME)
        assert result["originalPrice"] == 1000

    def test_instance_price_overrides_template(self):
        result = calculate_best_discount(
            instance_starting_in(10, price=800), {"price": 1500}, BOOKING_TIME
        )
        assert result["originalPrice"] == 800

    def test_template_rule_applies(self):
        template = {"price": 1000, "discountRules": [rule("t1", "hours_before_min", 200, hours=48, name="Early")]}

        result = calculate_best_discount(instance_starting_in(72), template, BOOKING_TIME)

        assert result["finalPrice"] == 800
        assert result["appliedDiscount"] == {
            "source": "template_rule",
            "discountType": "fixed_amount",
            "creditsSaved": 4,
            "ruleName": "Early",
        }

    def test_instance_rules_take_priority(self):
        """An applicable instance rule wins even over a bigger template rule."""
        template = {"discountRules": [rule("t1", "always", 500)]}
        instance = instance_starting_in(72, discountRules=[rule("i1", "always", 100, name="Instance")])

        result = calculate_best_discount(instance, template, BOOKING_TIME)

        assert result["finalPrice"] == 900
        assert result["appliedDiscount"]["source"] == "instance_rule"
        assert result["appliedDiscount"]["ruleName"] == "Instance"

    def test_falls_back_to_template_when_no_instance_rule_applies(self):
        template = {"discountRules": [rule("t1", "always", 150)]}
        instance = instance_starting_in(72, discountRules=[rule("i1", "hours_before_max", 300, hours=2)])

        result = calculate_best_discount(instance, template, BOOKING_TIME)

        assert result["finalPrice"] == 850
        assert result["appliedDiscount"]["source"] == "template_rule"

    def test_largest_applicable_rule_wins(self):
        template = {
            "discountRules": [
                rule("small", "always", 100),
                rule("big", "hours_before_min", 300, hours=24, name="Big"),
                rule("bigger-but-inapplicable", "hours_before_max", 900, hours=1),
            ]
        }

        result = calculate_best_discount(instance_starting_in(30), template, BOOKING_TIME)

        assert result["finalPrice"] == 700
        assert result["appliedDiscount"]["ruleName"] == "Big"

    def test_inactive_and_zero_rules_ignored(self):
        template = {
            "discountRules": [
                rule("off", "always", 400, is_active=False),
                rule("zero", "always", 0),
            ]
        }

        result = calculate_best_discount(instance_starting_in(5), template, BOOKING_TIME)

        assert result["appliedDiscount"] is None
        assert result["finalPrice"] == 1000

    def test_final_price_never_negative(self):
        template = {"price": 300, "discountRules": [rule("huge", "always", 1000)]}

        result = calculate_best_discount(instance_starting_in(5), template, BOOKING_TIME)

        assert result["finalPrice"] == 0
        assert result["appliedDiscount"]["creditsSaved"] == 6

    @pytest.mark.parametrize("hours,expected", [(1, 750), (3, 1000)])
    def test_last_minute_window(self, hours, expected):
        template = {"discountRules": [rule("lm", "hours_before_max", 250, hours=2)]}
        result = calculate_best_discount(instance_starting_in(hours), template, BOOKING_TIME)
        assert result["finalPrice"] == expected

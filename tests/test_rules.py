"""Tests for rule parsing and the four match predicates."""

import pytest

from autotag.rules import AmountRange, Rule, parse_amount_range, parse_rules


class TestParseAmountRange:

    @pytest.mark.parametrize('expression, lower, upper', [
        ('>100', 100.0, None),
        ('<50', None, 50.0),
        ('>100<200', 100.0, 200.0),
        ('>-50', -50.0, None),
        ('<-20.25', None, -20.25),
        ('>-100<-10', -100.0, -10.0),
        ('> 5', 5.0, None),
    ])
    def test_bounds(self, expression, lower, upper):
        parsed = parse_amount_range(expression)
        assert parsed.lower == lower
        assert parsed.upper == upper
        assert parsed.malformed is False

    @pytest.mark.parametrize('expression', ['', '   ', None])
    def test_blank_is_unbounded(self, expression):
        parsed = parse_amount_range(expression)
        assert parsed == AmountRange()
        assert parsed.unbounded

    def test_unreadable_expression_is_flagged_not_raised(self):
        parsed = parse_amount_range('about fifty')
        assert parsed.unbounded
        assert parsed.malformed is True

    @pytest.mark.parametrize('expression', ['>1,000', '>$100', '<1,500.00', '>10abc'])
    def test_number_must_end_at_next_bound_or_end(self, expression):
        parsed = parse_amount_range(expression)
        assert parsed.lower is None
        assert parsed.upper is None
        assert parsed.malformed is True

    def test_thousands_separator_rule_does_not_fire_on_small_amounts(self):
        rule = Rule.from_fields(amount='>1,000<5000')
        assert rule.amount_range.lower is None
        assert rule.amount_range.upper == 5000.0
        assert rule.amount_range.malformed is True

    def test_upper_bound_written_first(self):
        parsed = parse_amount_range('<200>100')
        assert parsed == AmountRange(lower=100.0, upper=200.0)

    def test_partially_readable_expression_keeps_good_side(self):
        parsed = parse_amount_range('>10<abc')
        assert parsed.lower == 10.0
        assert parsed.upper is None
        assert parsed.malformed is True


class TestTextFilters:

    def test_empty_filters_match_anything(self):
        rule = Rule()
        for value in ['', 'anything', 'CAFE', None]:
            assert rule.match_description(value)
            assert rule.match_account(value)
            assert rule.match_institution(value)

    def test_substring_match(self):
        rule = Rule.from_fields(description='CAFE', account='Visa', institution='Chase')
        assert rule.match_description('BLUE CAFE LATTE')
        assert rule.match_account('Chase Visa Signature')
        assert rule.match_institution('JPMorgan Chase')

    def test_match_is_case_sensitive(self):
        rule = Rule.from_fields(description='CAFE')
        assert not rule.match_description('cafe latte')
        assert not rule.match_description('Cafe')

    def test_missing_value_only_matches_wildcard(self):
        rule = Rule.from_fields(account='Visa')
        assert not rule.match_account(None)
        assert not rule.match_account('')


class TestMatchAmount:

    def test_both_bounds_are_exclusive(self):
        rule = Rule.from_fields(amount='>100<200')
        assert rule.match_amount(150)
        assert not rule.match_amount(100)
        assert not rule.match_amount(200)
        assert not rule.match_amount(250)
        assert not rule.match_amount(50)

    def test_lower_only(self):
        rule = Rule.from_fields(amount='>0')
        assert rule.match_amount(0.01)
        assert not rule.match_amount(0)
        assert not rule.match_amount(-5)

    def test_upper_only(self):
        rule = Rule.from_fields(amount='<-10')
        assert rule.match_amount(-10.5)
        assert not rule.match_amount(-10)

    def test_no_bounds_always_match(self):
        rule = Rule.from_fields(amount='')
        assert rule.match_amount(-1e9)
        assert rule.match_amount(1e9)

    def test_inverted_bounds_never_match(self):
        rule = Rule.from_fields(amount='>200<100')
        for amount in [50, 100, 150, 200, 250]:
            assert not rule.match_amount(amount)


class TestRuleConstruction:

    def test_tags_split_and_blanks_removed(self):
        rule = Rule.from_fields(category='Food', tags='dining,, coffee ,dining,')
        assert rule.tags == ('dining', 'coffee')

    def test_empty_tag_field(self):
        assert Rule.from_fields(tags='').tags == ()

    def test_rule_is_immutable(self):
        rule = Rule.from_fields(category='Food')
        with pytest.raises(AttributeError):
            rule.category = 'Other'

    def test_from_short_row_pads_missing_cells(self):
        rule = Rule.from_row(['Food', 'dining'])
        assert rule.category == 'Food'
        assert rule.description_filter == ''
        assert rule.amount_range.unbounded

    def test_amount_parsed_once_at_construction(self):
        rule = Rule.from_fields(amount='>1<3')
        assert rule.amount_range == AmountRange(lower=1.0, upper=3.0)


class TestParseRules:

    def test_header_discarded_and_order_kept(self, rule_rows):
        rules = parse_rules(rule_rows)
        assert [r.category for r in rules] == ['Food', 'Coffee', '', 'Refund']

    def test_blank_rows_skipped(self):
        rules = parse_rules([['Category'], ['', '', ''], [], ['Food']])
        assert len(rules) == 1
        assert rules[0].category == 'Food'

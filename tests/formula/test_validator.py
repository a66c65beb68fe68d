"""Tests for the static formula safety filter."""

import pytest

from prisma_engine.config import reset_config
from prisma_engine.formula.validator import (
    DENYLISTED_TOKENS,
    FormulaValidator,
    check_formula,
    default_validator,
    strip_comparison_operators,
    validate_formula,
)


class TestAcceptedFormulas:
    """Test formulas that must pass."""

    @pytest.mark.parametrize(
        "formula",
        [
            "daily_deliveries * 30 * revenue_per_delivery - cost_per_delivery * daily_deliveries * 30",
            "x > 5 ? a : b",
            "a >= b && c <= d || e != f",
            "scenario === 'hire' ? 1 : 0",
            "Math.max(0, (daily_deliveries - driver_count * 15) * 0.8)",
            "(1 - driver_reliability) * 0.25 + delivery_time_avg * 0.003",
            "a % 3 + b ** 2",
        ],
    )
    def test_accepts_arithmetic(self, formula):
        """Test that plain arithmetic and ternaries are accepted."""
        assert validate_formula(formula)
        assert check_formula(formula).reason is None

    def test_token_embedded_in_identifier_is_allowed(self):
        """Test that denylisted words only match as whole words."""
        assert validate_formula("evaluation_count * 2")
        assert validate_formula("open_orders + top_speed")


class TestRejectedFormulas:
    """Test formulas that must be refused before evaluation."""

    def test_rejects_statement_separator(self):
        """Test that a semicolon is rejected."""
        assert not validate_formula("a = b; c")

    def test_rejects_indexing(self):
        """Test that square brackets are rejected."""
        result = check_formula("x[0]")
        assert not result.valid
        assert result.reason == "template_or_index_syntax"

    def test_rejects_template_literal(self):
        assert check_formula("`${a}`").reason == "template_or_index_syntax"

    def test_rejects_block(self):
        assert check_formula("{ a }").reason == "statement_syntax"

    @pytest.mark.parametrize(
        "formula",
        [
            "setTimeout(a, 10)",
            "fetch(url) + 1",
            "a + constructor",
            "eval(a)",
            "__import__('os')",
            "process + 1",
            "window.location",
        ],
    )
    def test_rejects_denylisted_tokens(self, formula):
        """Test that runtime, network, timer and reflection tokens are rejected."""
        result = check_formula(formula)
        assert not result.valid
        assert result.reason.startswith("denylisted_token:")

    def test_every_denylisted_token_is_rejected(self):
        """Test each denylisted token in an otherwise harmless formula."""
        for token in DENYLISTED_TOKENS:
            assert not validate_formula(f"a + {token}"), token

    def test_rejects_bare_assignment(self):
        """Test that '=' outside a comparison operator is an assignment."""
        assert check_formula("a = b + 1").reason == "assignment"

    def test_comparisons_are_not_assignments(self):
        assert validate_formula("a == b ? 1 : 2")
        assert validate_formula("a !== b ? 1 : 2")

    def test_rejects_too_long(self):
        formula = "a + " * 300 + "a"
        assert len(formula) > 1000
        assert check_formula(formula).reason == "too_long"

    def test_custom_max_length(self):
        validator = FormulaValidator(max_length=5)
        assert not validator.is_safe("a + b + c")
        assert validator.is_safe("a + b")

    def test_configured_max_length(self, monkeypatch):
        monkeypatch.setenv("PRISMA_MAX_FORMULA_LENGTH", "5")
        reset_config()
        assert default_validator().max_length == 5
        assert check_formula("a + b + c").reason == "too_long"
        assert check_formula("a + b + c", max_length=50).valid

    @pytest.mark.parametrize("formula", ["", "   "])
    def test_rejects_empty(self, formula):
        assert check_formula(formula).reason == "empty"

    def test_rejects_non_string(self):
        assert check_formula(None).reason == "not_a_string"
        assert check_formula(42).reason == "not_a_string"

    @pytest.mark.parametrize("formula", ["a $ b", "a @ b", "a # b", "a \\ b"])
    def test_rejects_disallowed_characters(self, formula):
        assert check_formula(formula).reason == "disallowed_character"

    def test_check_result_is_falsy_when_rejected(self):
        assert not check_formula("x[0]")
        assert check_formula("x + 1")


class TestStripComparisonOperators:
    """Test comparison operator stripping."""

    def test_strips_longest_operators_first(self):
        """Test that '===' is not left behind as '='."""
        assert "=" not in strip_comparison_operators("a === b !== c")

    def test_leaves_assignment(self):
        assert strip_comparison_operators("x = a >= b") == "x = a  b"

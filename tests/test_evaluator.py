"""Tests for tree evaluation."""

import decimal
from decimal import Decimal

import pytest

from decexpr.context import VARIADIC, FunctionDef
from decexpr.core.errors import (
    ArgumentError,
    CyclicReferenceError,
    EvaluationError,
    ExpressionArithmeticError,
    ParseError,
    ResolutionDepthError,
    UnknownVariableError,
)
from decexpr.parser import BooleanVisitor, EvalVisitor, Parser
from decexpr.precision import PrecisionConfig


@pytest.fixture
def evaluate(registry, symbols):
    """Evaluate source text against the fixture registry and symbols."""

    def _evaluate(source, precision=7, rounding="HALF_UP", max_depth=64):
        parser = Parser(registry)
        visitor = EvalVisitor(
            symbols, parser.parse, PrecisionConfig.build(precision, rounding), max_depth
        )
        return visitor.evaluate(parser.parse(source))

    return _evaluate


class TestPrecisionContext:
    """Test that arithmetic follows the configured context."""

    def test_literals_are_rounded_to_precision(self, evaluate):
        """Test that a long literal is read at the active precision."""
        assert evaluate("1.23456789", precision=4) == Decimal("1.235")

    def test_rounding_mode_applies(self, evaluate):
        """Test HALF_UP against DOWN on the same division."""
        assert evaluate("2/3", precision=3) == Decimal("0.667")
        assert evaluate("2/3", precision=3, rounding="DOWN") == Decimal("0.666")

    def test_thread_context_untouched(self, evaluate):
        """Test that evaluation does not leak its context."""
        before = decimal.getcontext().prec
        evaluate("1/3", precision=50)
        assert decimal.getcontext().prec == before

    def test_user_function_sees_precision(self, evaluate, registry):
        """Test that plain Decimal arithmetic in a rule is rounded."""
        registry.add_function(FunctionDef("third", 1, lambda args: args[0] / 3))
        assert evaluate("third(1)", precision=3) == Decimal("0.333")

    def test_numeric_variables_are_rounded(self, evaluate, symbols):
        """Test that a bound number is read at the active precision."""
        symbols.set("x", Decimal("2.71828"))
        assert evaluate("x", precision=3) == Decimal("2.72")


class TestVariableResolution:
    """Test variables and sub-expressions."""

    def test_unknown_variable(self, evaluate):
        """Test that a missing binding fails at evaluation."""
        with pytest.raises(UnknownVariableError, match="Unknown variable 'x'"):
            evaluate("x + 1")

    def test_case_insensitive(self, evaluate, symbols):
        """Test A=10, B=10 and a + B."""
        symbols.set("A", 10)
        symbols.set("B", 10)
        assert evaluate("a + B") == Decimal(20)

    def test_sub_expression(self, evaluate, symbols):
        """Test A = "c+d" with C=5, D=5."""
        symbols.update({"A": "c+d", "B": 10, "C": 5, "D": 5})
        assert evaluate("a+B") == Decimal(20)

    def test_nested_sub_expressions(self, evaluate, symbols):
        """Test a chain of sub-expressions."""
        symbols.update({"a": "b * 2", "b": "c + 1", "c": 4})
        assert evaluate("a") == Decimal(10)

    def test_same_variable_twice_is_not_a_cycle(self, evaluate, symbols):
        """Test that a diamond of references resolves."""
        symbols.update({"a": "b + c", "b": "d", "c": "d", "d": 3})
        assert evaluate("a + d") == Decimal(9)

    def test_sub_expression_parse_error(self, evaluate, symbols):
        """Test that a bad sub-expression fails the evaluation."""
        symbols.set("a", "1 +")
        with pytest.raises(ParseError, match="Missing parameter"):
            evaluate("a")


class TestCycles:
    """Test detection of cyclic references."""

    def test_direct_self_reference(self, evaluate, symbols):
        """Test A = "A + 1"."""
        symbols.set("A", "A + 1")
        with pytest.raises(CyclicReferenceError) as exc_info:
            evaluate("a")
        assert exc_info.value.chain == ["A", "A"]

    def test_transitive_reference(self, evaluate, symbols):
        """Test A -> B -> C -> A."""
        symbols.update({"A": "b", "B": "c * 2", "C": "a - 1"})
        with pytest.raises(CyclicReferenceError, match="A -> B -> C -> A"):
            evaluate("1 + a")

    def test_cycle_below_entry_point(self, evaluate, symbols):
        """Test that the reported chain starts at the repeated name."""
        symbols.update({"top": "loop", "loop": "2 * loop"})
        with pytest.raises(CyclicReferenceError) as exc_info:
            evaluate("top")
        assert exc_info.value.chain == ["loop", "loop"]

    def test_resolution_depth_bound(self, evaluate, symbols):
        """Test that a long acyclic chain is cut off."""
        for i in range(10):
            symbols.set(f"v{i}", f"v{i + 1} + 1")
        symbols.set("v10", 0)
        assert evaluate("v0") == Decimal(10)
        with pytest.raises(ResolutionDepthError):
            evaluate("v0", max_depth=5)


class TestFunctionResults:
    """Test calling rules and coercing their results."""

    def test_variadic_user_function(self, evaluate, registry, symbols):
        """Test a + testsum(1,3) with A=1."""
        registry.add_function(FunctionDef("testSum", VARIADIC, lambda args: sum(args, Decimal(0))))
        symbols.set("A", 1)
        assert evaluate("a+testsum(1,3)") == Decimal(5)
        assert evaluate("TESTSUM()") == Decimal(0)

    def test_variadic_rule_rejects_arguments(self, evaluate, registry):
        """Test that a variadic rule may raise ArgumentError itself."""

        def pair(args):
            if len(args) % 2:
                raise ArgumentError("pair needs an even count", "pair")
            return len(args) // 2

        registry.add_function(FunctionDef("pair", VARIADIC, pair))
        assert evaluate("pair(1, 2, 3, 4)") == Decimal(2)
        with pytest.raises(ArgumentError):
            evaluate("pair(1)")

    @pytest.mark.parametrize(
        "result,expected",
        [(7, Decimal(7)), (True, Decimal(1)), (0.25, Decimal("0.25"))],
    )
    def test_result_coercion(self, evaluate, registry, result, expected):
        """Test int, bool and float results."""
        registry.add_function(FunctionDef("const", 0, lambda args: result))
        assert evaluate("const()") == expected

    def test_non_numeric_result(self, evaluate, registry):
        """Test that a string result is an EvaluationError."""
        registry.add_function(FunctionDef("word", 0, lambda args: "seven"))
        with pytest.raises(EvaluationError, match="'word' returned str"):
            evaluate("word()")

    @pytest.mark.parametrize(
        "result", [Decimal("Infinity"), Decimal("-Infinity"), Decimal("NaN"), float("nan"), float("inf")]
    )
    def test_non_finite_result(self, evaluate, registry, result):
        """Test that NaN and infinities from a rule are arithmetic errors."""
        registry.add_function(FunctionDef("edge", 0, lambda args: result))
        with pytest.raises(ExpressionArithmeticError, match="'edge' produced a non-finite result"):
            evaluate("edge()")

    def test_python_zero_division_in_rule(self, evaluate, registry):
        """Test that ZeroDivisionError from a rule is translated."""
        registry.add_function(FunctionDef("broken", 0, lambda args: 1 / 0))
        with pytest.raises(ExpressionArithmeticError):
            evaluate("broken()")

    def test_decimal_signal_in_rule(self, evaluate, registry):
        """Test that decimal InvalidOperation is translated."""
        registry.add_function(FunctionDef("bad", 0, lambda args: Decimal(-1).sqrt()))
        with pytest.raises(ExpressionArithmeticError, match="InvalidOperation"):
            evaluate("bad()")


class TestLazyFunctions:
    """Test functions that receive unevaluated arguments."""

    def test_lazy_if(self, evaluate, registry):
        """Test a short-circuiting conditional."""

        def lazy_if(args):
            condition, when_true, when_false = args
            return when_true() if condition() != 0 else when_false()

        registry.add_function(FunctionDef("LIF", 3, lazy_if, lazy=True))
        assert evaluate("LIF(1, 2, 1/0)") == Decimal(2)
        with pytest.raises(ExpressionArithmeticError):
            evaluate("LIF(0, 2, 1/0)")

    def test_unused_argument_is_never_resolved(self, evaluate, registry):
        """Test that an unknown variable in a skipped branch is ignored."""
        registry.add_function(FunctionDef("first", VARIADIC, lambda args: args[0](), lazy=True))
        assert evaluate("first(4, missing)") == Decimal(4)


class TestListArguments:
    """Test list variables passed to variadic functions."""

    def test_expanded_into_variadic_function(self, evaluate, registry, symbols):
        """Test that the list items become the arguments."""
        registry.add_function(FunctionDef("count", VARIADIC, lambda args: len(args)))
        symbols.set("x", [1, 2, 3, 4])
        assert evaluate("count(x)") == Decimal(4)
        assert evaluate("MAX(X)") == Decimal(4)

    def test_items_rounded_to_precision(self, evaluate, symbols):
        """Test that list items are read at the active precision."""
        symbols.set("x", [Decimal("1.23456789"), 1])
        assert evaluate("SUM(x)", precision=3) == Decimal("2.23")

    def test_empty_list(self, evaluate, symbols):
        """Test SUM over an empty list."""
        symbols.set("x", [])
        assert evaluate("SUM(x)") == Decimal(0)

    def test_expanded_into_lazy_function(self, evaluate, registry, symbols):
        """Test that a lazy function receives one thunk per item."""
        registry.add_function(
            FunctionDef("last", VARIADIC, lambda args: args[-1](), lazy=True)
        )
        symbols.set("x", (5, 6, 7))
        assert evaluate("last(x)") == Decimal(7)

    @pytest.mark.parametrize("source", ["x + 1", "SUM(x, 1)", "SQRT(x)", "SUM(-x)"])
    def test_list_outside_variadic_call(self, evaluate, symbols, source):
        """Test that a list is only valid as the sole variadic argument."""
        symbols.set("x", [1, 2])
        with pytest.raises(ArgumentError, match="List variable 'x'"):
            evaluate(source)


class TestLazyBindings:
    """Test variables bound to zero-argument callables."""

    def test_called_on_every_read(self, evaluate, symbols):
        """Test that the callable is invoked each time the name is read."""
        readings = iter([1, 2, 3])
        symbols.set("sensor", lambda: next(readings))
        assert evaluate("sensor + sensor") == Decimal(3)
        assert evaluate("sensor") == Decimal(3)

    def test_result_rounded_to_precision(self, evaluate, symbols):
        """Test that a float result is read at the active precision."""
        symbols.set("third", lambda: 1 / 3)
        assert evaluate("third", precision=3) == Decimal("0.333")

    @pytest.mark.parametrize("value", [float("inf"), Decimal("NaN")])
    def test_non_finite_value(self, evaluate, symbols, value):
        """Test that a callable producing NaN or infinity fails."""
        symbols.set("edge", lambda: value)
        with pytest.raises(ExpressionArithmeticError, match="'edge' produced a non-finite result"):
            evaluate("edge * 0")

    def test_non_numeric_value(self, evaluate, symbols):
        """Test that a callable producing text fails."""
        symbols.set("word", lambda: "seven")
        with pytest.raises(EvaluationError, match="'word' returned str"):
            evaluate("word")


class TestBooleanVisitor:
    """Test detection of boolean results."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("1 > 2", True),
            ("a && b", True),
            ("NOT(x)", True),
            ("1 + 2", False),
            ("x", False),
            ("3", False),
            ("-(1 > 2)", False),
            ("IF(x, 1, 2 > 1)", True),
            ("IF(x > 1, 1, 2)", False),
        ],
    )
    def test_is_boolean(self, parser, source, expected):
        """Test the outermost operation."""
        assert parser.parse(source).accept(BooleanVisitor()) is expected

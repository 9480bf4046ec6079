"""
Built-in operators, functions and constants.

Every rule receives its arguments as a list of Decimals and runs inside the
evaluation's decimal context, so plain Decimal arithmetic here is rounded to
the configured precision. Trigonometric and hyperbolic functions go through
float math and work in degrees.
"""

import decimal
import math
import random
from decimal import Decimal
from typing import Callable, Dict, List

from .context import (
    VARIADIC,
    Associativity,
    DefinitionKind,
    FunctionDef,
    OperatorDef,
    Registry,
)
from .core.errors import ArgumentError, ExpressionArithmeticError

# Operator precedence levels (higher binds tighter)
PRECEDENCE_UNARY = 60
PRECEDENCE_POWER = 40
PRECEDENCE_MULTIPLICATIVE = 30
PRECEDENCE_ADDITIVE = 20
PRECEDENCE_COMPARISON = 10
PRECEDENCE_EQUALITY = 7
PRECEDENCE_AND = 4
PRECEDENCE_OR = 2

ZERO = Decimal(0)
ONE = Decimal(1)

DEFAULT_CONSTANTS: Dict[str, Decimal] = {
    "e": Decimal(
        "2.71828182845904523536028747135266249775724709369995957496696762772407663"
    ),
    "PI": Decimal(
        "3.1415926535897932384626433832795028841971693993751058209749445923078164062862089986280348253421170679"
    ),
    "PHI": Decimal(
        "1.61803398874989484820458683436563811772030917980576286213544862270526046281890244970720720418939113"
    ),
    "sq2": Decimal(
        "1.4142135623730950488016887242096980785696718753769480731766797379907324784621070388503875343276415727"
    ),
    "sq3": Decimal(
        "1.7320508075688772935274463415058723669428052538103806280558069794519330169088000370811461867572485756"
    ),
    "sq5": Decimal(
        "2.2360679774997896964091736687312762354406183596115257242708972454105209256378048994144144083787822749"
    ),
    "TRUE": ONE,
    "FALSE": ZERO,
}


def truth(value: bool) -> Decimal:
    return ONE if value else ZERO


def from_float(value: float) -> Decimal:
    """Round a float result to the active precision; inf and nan are errors."""
    if not math.isfinite(value):
        raise ExpressionArithmeticError(f"Result out of range: {value}")
    return decimal.getcontext().create_decimal_from_float(value)


def _integer_argument(value: Decimal, function: str, what: str = "argument") -> int:
    if value != value.to_integral_value():
        raise ArgumentError(f"{function} {what} must be an integer, got {value}", function)
    return int(value)


# Operators


def _divide(args: List[Decimal]) -> Decimal:
    left, right = args
    if right.is_zero():
        raise ExpressionArithmeticError("Division by zero", details={"dividend": str(left)})
    return left / right


def _remainder(args: List[Decimal]) -> Decimal:
    left, right = args
    if right.is_zero():
        raise ExpressionArithmeticError("Remainder by zero", details={"dividend": str(left)})
    return left % right


def _power(args: List[Decimal]) -> Decimal:
    """
    Raise to a power.

    Integer exponents are exact up to precision; fractional exponents need a
    non-negative base.
    """
    base, exponent = args
    if base.is_zero():
        if exponent.is_zero():
            return ONE
        if exponent < 0:
            raise ExpressionArithmeticError("Zero raised to a negative power")
        return ZERO
    if base < 0 and exponent != exponent.to_integral_value():
        raise ExpressionArithmeticError(
            f"Negative base {base} with fractional exponent {exponent}"
        )
    return base ** exponent


def _logical_and(args: List[Decimal]) -> Decimal:
    left, right = args
    return truth(not left.is_zero() and not right.is_zero())


def _logical_or(args: List[Decimal]) -> Decimal:
    left, right = args
    return truth(not left.is_zero() or not right.is_zero())


def _operators() -> List[OperatorDef]:
    def binary(symbol, precedence, rule, associativity=Associativity.LEFT, boolean=False):
        return OperatorDef(
            symbol,
            precedence,
            associativity,
            rule,
            boolean=boolean,
            kind=DefinitionKind.BUILTIN_OPERATOR,
        )

    def comparison(symbol, precedence, test):
        return binary(symbol, precedence, lambda args: truth(test(args[0], args[1])), boolean=True)

    return [
        binary("+", PRECEDENCE_ADDITIVE, lambda args: args[0] + args[1]),
        binary("-", PRECEDENCE_ADDITIVE, lambda args: args[0] - args[1]),
        binary("*", PRECEDENCE_MULTIPLICATIVE, lambda args: args[0] * args[1]),
        binary("/", PRECEDENCE_MULTIPLICATIVE, _divide),
        binary("%", PRECEDENCE_MULTIPLICATIVE, _remainder),
        binary("^", PRECEDENCE_POWER, _power, associativity=Associativity.RIGHT),
        binary("&&", PRECEDENCE_AND, _logical_and, boolean=True),
        binary("||", PRECEDENCE_OR, _logical_or, boolean=True),
        comparison(">", PRECEDENCE_COMPARISON, lambda a, b: a > b),
        comparison(">=", PRECEDENCE_COMPARISON, lambda a, b: a >= b),
        comparison("<", PRECEDENCE_COMPARISON, lambda a, b: a < b),
        comparison("<=", PRECEDENCE_COMPARISON, lambda a, b: a <= b),
        comparison("=", PRECEDENCE_EQUALITY, lambda a, b: a == b),
        comparison("==", PRECEDENCE_EQUALITY, lambda a, b: a == b),
        comparison("!=", PRECEDENCE_EQUALITY, lambda a, b: a != b),
        comparison("<>", PRECEDENCE_EQUALITY, lambda a, b: a != b),
        OperatorDef(
            "-",
            PRECEDENCE_UNARY,
            Associativity.RIGHT,
            lambda args: -args[0],
            unary=True,
            kind=DefinitionKind.BUILTIN_OPERATOR,
        ),
        OperatorDef(
            "+",
            PRECEDENCE_UNARY,
            Associativity.RIGHT,
            lambda args: +args[0],
            unary=True,
            kind=DefinitionKind.BUILTIN_OPERATOR,
        ),
    ]


# Float-backed functions


def _float_function(name: str, fn: Callable[..., float]) -> Callable[[List[Decimal]], Decimal]:
    def rule(args: List[Decimal]) -> Decimal:
        try:
            result = fn(*(float(arg) for arg in args))
        except ValueError as exc:
            raise ExpressionArithmeticError(
                f"{name}() argument out of domain: {', '.join(str(a) for a in args)}"
            ) from exc
        return from_float(result)

    return rule


def _acot(x: float) -> float:
    if x == 0:
        raise ValueError("acot(0)")
    return math.degrees(math.atan(1 / x))


def _acosh(x: float) -> float:
    if x < 1:
        raise ValueError("acosh domain")
    return math.log(x + math.sqrt(x * x - 1))


def _atanh(x: float) -> float:
    if abs(x) >= 1:
        raise ValueError("atanh domain")
    return 0.5 * math.log((1 + x) / (1 - x))


FLOAT_FUNCTIONS: Dict[str, Callable[..., float]] = {
    "SIN": lambda x: math.sin(math.radians(x)),
    "COS": lambda x: math.cos(math.radians(x)),
    "TAN": lambda x: math.tan(math.radians(x)),
    "ASIN": lambda x: math.degrees(math.asin(x)),
    "ACOS": lambda x: math.degrees(math.acos(x)),
    "ATAN": lambda x: math.degrees(math.atan(x)),
    "ATAN2": lambda y, x: math.degrees(math.atan2(y, x)),
    "SEC": lambda x: 1.0 / math.cos(math.radians(x)),
    "CSC": lambda x: 1.0 / math.sin(math.radians(x)),
    "COT": lambda x: 1.0 / math.tan(math.radians(x)),
    "ACOT": _acot,
    "SINH": math.sinh,
    "COSH": math.cosh,
    "TANH": math.tanh,
    "SECH": lambda x: 1.0 / math.cosh(x),
    "CSCH": lambda x: 1.0 / math.sinh(x),
    "COTH": lambda x: 1.0 / math.tanh(x),
    "ASINH": lambda x: math.log(x + math.sqrt(x * x + 1)),
    "ACOSH": _acosh,
    "ATANH": _atanh,
    "RAD": math.radians,
    "DEG": math.degrees,
}


# Decimal functions


def _require_arguments(name: str, args: List[Decimal]) -> None:
    if not args:
        raise ArgumentError(f"{name} requires at least one parameter", name)


def _max(args: List[Decimal]) -> Decimal:
    _require_arguments("MAX", args)
    return max(args)


def _min(args: List[Decimal]) -> Decimal:
    _require_arguments("MIN", args)
    return min(args)


def _not(args: List[Decimal]) -> Decimal:
    return truth(args[0].is_zero())


def _if(args: List[Decimal]) -> Decimal:
    condition, when_true, when_false = args
    return when_false if condition.is_zero() else when_true


def _random(args: List[Decimal]) -> Decimal:
    return from_float(random.random())


def _log(args: List[Decimal]) -> Decimal:
    x = args[0]
    if x <= 0:
        raise ExpressionArithmeticError(f"Logarithm of non-positive number {x}")
    return x.ln()


def _log10(args: List[Decimal]) -> Decimal:
    x = args[0]
    if x <= 0:
        raise ExpressionArithmeticError(f"Logarithm of non-positive number {x}")
    return x.log10()


def _sqrt(args: List[Decimal]) -> Decimal:
    x = args[0]
    if x < 0:
        raise ExpressionArithmeticError("Argument to SQRT() function must not be negative")
    return x.sqrt()


def _rootn(args: List[Decimal]) -> Decimal:
    """n-th root of x, computed with guard digits then rounded."""
    x, n = args
    if x < 0:
        raise ExpressionArithmeticError("First argument for ROOTN(X,Y) must not be negative")
    if n.is_zero():
        raise ExpressionArithmeticError("Root of degree zero")
    if x.is_zero():
        return ZERO
    context = decimal.getcontext()
    with decimal.localcontext() as guarded:
        guarded.prec = context.prec + 6
        root = x ** (ONE / n)
    return context.plus(root)


def _round(args: List[Decimal]) -> Decimal:
    """Round to a number of decimal places with the configured rounding mode."""
    x, places = args
    scale = _integer_argument(places, "ROUND", "decimal places")
    context = decimal.getcontext()
    # quantize fails when the result needs more digits than the context holds
    digits = max(context.prec, x.adjusted() + scale + 2, 1)
    wide = decimal.Context(prec=digits, rounding=context.rounding)
    return x.quantize(Decimal(1).scaleb(-scale), context=wide)


def _floor(args: List[Decimal]) -> Decimal:
    return args[0].to_integral_value(rounding=decimal.ROUND_FLOOR)


def _ceiling(args: List[Decimal]) -> Decimal:
    return args[0].to_integral_value(rounding=decimal.ROUND_CEILING)


def _fact(args: List[Decimal]) -> Decimal:
    n = _integer_argument(args[0], "FACT")
    if n < 0:
        raise ArgumentError(f"FACT argument must not be negative, got {n}", "FACT")
    return decimal.getcontext().plus(Decimal(math.factorial(n)))


def _sum(args: List[Decimal]) -> Decimal:
    total = ZERO
    for value in args:
        total += value
    return total


def _mean(args: List[Decimal]) -> Decimal:
    _require_arguments("MEAN", args)
    return _sum(args) / len(args)


def _variance(args: List[Decimal]) -> Decimal:
    """Population variance."""
    _require_arguments("VARIANCE", args)
    mean = _mean(args)
    return _mean([(value - mean) ** 2 for value in args])


def _stddev(args: List[Decimal]) -> Decimal:
    _require_arguments("STDDEV", args)
    return _variance(args).sqrt()


DECIMAL_FUNCTIONS = [
    ("NOT", 1, _not, True),
    ("IF", 3, _if, False),
    ("RANDOM", 0, _random, False),
    ("MAX", VARIADIC, _max, False),
    ("MIN", VARIADIC, _min, False),
    ("ABS", 1, lambda args: abs(args[0]), False),
    ("LOG", 1, _log, False),
    ("LOG10", 1, _log10, False),
    ("ROUND", 2, _round, False),
    ("FLOOR", 1, _floor, False),
    ("CEILING", 1, _ceiling, False),
    ("SQRT", 1, _sqrt, False),
    ("ROOTN", 2, _rootn, False),
    ("FACT", 1, _fact, False),
    ("SUM", VARIADIC, _sum, False),
    ("MEAN", VARIADIC, _mean, False),
    ("VARIANCE", VARIADIC, _variance, False),
    ("STDDEV", VARIADIC, _stddev, False),
]


def _functions() -> List[FunctionDef]:
    functions = [
        FunctionDef(name, arity, rule, boolean=boolean, kind=DefinitionKind.BUILTIN_FUNCTION)
        for name, arity, rule, boolean in DECIMAL_FUNCTIONS
    ]
    for name, fn in FLOAT_FUNCTIONS.items():
        arity = 2 if name == "ATAN2" else 1
        functions.append(
            FunctionDef(
                name, arity, _float_function(name, fn), kind=DefinitionKind.BUILTIN_FUNCTION
            )
        )
    return functions


def build_registry() -> Registry:
    """Create a registry holding every built-in operator and function."""
    registry = Registry()
    registry.update(_operators())
    registry.update(_functions())
    return registry


_DEFAULT_REGISTRY = build_registry()


def default_registry() -> Registry:
    """Copy of the built-in registry; callers may extend it freely."""
    return _DEFAULT_REGISTRY.copy()

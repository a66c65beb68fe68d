"""Recursive-descent parser for the restricted formula grammar.

Formulas compile into a small tree of expression nodes that evaluate
against a plain mapping of identifier values. Nothing outside that mapping
and the whitelisted math functions is reachable from a formula.

Grammar (lowest to highest precedence)::

    conditional := or ('?' conditional ':' conditional)?
    or          := and ('||' and)*
    and         := equality ('&&' equality)*
    equality    := comparison (('===' | '!==' | '==' | '!=') comparison)*
    comparison  := additive (('<' | '<=' | '>' | '>=') additive)*
    additive    := multiplicative (('+' | '-') multiplicative)*
    multiplicative := unary (('*' | '/' | '%') unary)*
    unary       := ('-' | '+' | '!') unary | power
    power       := primary ('**' unary)?
    primary     := NUMBER | STRING | call | name | 'Math' '.' NAME [args]
                 | '(' conditional ')'
"""

from dataclasses import dataclass
import functools
import math
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from prisma_engine.exceptions import FormulaSyntaxError

Value = Union[float, bool, str]


class EvaluationFailure(Exception):
    """Raised inside node evaluation; converted to a result by the evaluator."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


# ---------------------------------------------------------------------------
# Math library
# ---------------------------------------------------------------------------


def _js_round(x: float) -> float:
    return float(math.floor(x + 0.5))


def _sign(x: float) -> float:
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return 0.0


def _cbrt(x: float) -> float:
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


def _min(*args: float) -> float:
    return min(args) if args else math.inf


def _max(*args: float) -> float:
    return max(args) if args else -math.inf


def _hypot(*args: float) -> float:
    return math.sqrt(sum(a * a for a in args))


# name -> (function, min_args, max_args or None for variadic)
FUNCTIONS: Dict[str, Tuple[Callable[..., float], int, Optional[int]]] = {
    "abs": (abs, 1, 1),
    "ceil": (lambda x: float(math.ceil(x)), 1, 1),
    "floor": (lambda x: float(math.floor(x)), 1, 1),
    "round": (_js_round, 1, 1),
    "trunc": (lambda x: float(math.trunc(x)), 1, 1),
    "sign": (_sign, 1, 1),
    "sqrt": (math.sqrt, 1, 1),
    "cbrt": (_cbrt, 1, 1),
    "exp": (math.exp, 1, 1),
    "log": (math.log, 1, 1),
    "log10": (math.log10, 1, 1),
    "log2": (math.log2, 1, 1),
    "pow": (math.pow, 2, 2),
    "min": (_min, 0, None),
    "max": (_max, 0, None),
    "hypot": (_hypot, 0, None),
    "sin": (math.sin, 1, 1),
    "cos": (math.cos, 1, 1),
    "tan": (math.tan, 1, 1),
    "atan": (math.atan, 1, 1),
    "atan2": (math.atan2, 2, 2),
}

CONSTANTS: Dict[str, Value] = {
    "PI": math.pi,
    "E": math.e,
    "Infinity": math.inf,
    "NaN": math.nan,
    "true": True,
    "false": False,
}

MATH_NAMESPACE = "Math"


def truthy(value: Value) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def _number(value: Value, context: str) -> float:
    if isinstance(value, str):
        raise EvaluationFailure(f"string operand for {context}")
    return float(value)


# ---------------------------------------------------------------------------
# Expression nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    value: Value

    def evaluate(self, env: Mapping[str, Value]) -> Value:
        return self.value

    def names(self) -> List[str]:
        return []


@dataclass(frozen=True)
class Name:
    name: str

    def evaluate(self, env: Mapping[str, Value]) -> Value:
        if self.name in env:
            return env[self.name]
        if self.name in CONSTANTS:
            return CONSTANTS[self.name]
        raise EvaluationFailure(f"unknown identifier: {self.name}")

    def names(self) -> List[str]:
        return [] if self.name in CONSTANTS else [self.name]


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Any

    def evaluate(self, env: Mapping[str, Value]) -> Value:
        value = self.operand.evaluate(env)
        if self.op == "!":
            return not truthy(value)
        number = _number(value, self.op)
        return -number if self.op == "-" else number

    def names(self) -> List[str]:
        return self.operand.names()


@dataclass(frozen=True)
class Binary:
    op: str
    left: Any
    right: Any

    def evaluate(self, env: Mapping[str, Value]) -> Value:
        left = self.left.evaluate(env)
        right = self.right.evaluate(env)

        if self.op in ("==", "==="):
            return _equal(left, right)
        if self.op in ("!=", "!=="):
            return not _equal(left, right)

        if self.op in ("<", "<=", ">", ">="):
            if isinstance(left, str) and isinstance(right, str):
                return _compare(self.op, left, right)
            return _compare(self.op, _number(left, self.op), _number(right, self.op))

        a = _number(left, self.op)
        b = _number(right, self.op)
        if self.op == "+":
            return a + b
        if self.op == "-":
            return a - b
        if self.op == "*":
            return a * b
        if self.op == "/":
            if b == 0:
                raise EvaluationFailure("division by zero")
            return a / b
        if self.op == "%":
            if b == 0:
                raise EvaluationFailure("modulo by zero")
            return math.fmod(a, b)
        if self.op == "**":
            return math.pow(a, b)
        raise EvaluationFailure(f"unsupported operator: {self.op}")

    def names(self) -> List[str]:
        return self.left.names() + self.right.names()


@dataclass(frozen=True)
class Logical:
    op: str
    left: Any
    right: Any

    def evaluate(self, env: Mapping[str, Value]) -> Value:
        left = self.left.evaluate(env)
        if self.op == "&&":
            return self.right.evaluate(env) if truthy(left) else left
        return left if truthy(left) else self.right.evaluate(env)

    def names(self) -> List[str]:
        return self.left.names() + self.right.names()


@dataclass(frozen=True)
class Conditional:
    test: Any
    consequent: Any
    alternate: Any

    def evaluate(self, env: Mapping[str, Value]) -> Value:
        if truthy(self.test.evaluate(env)):
            return self.consequent.evaluate(env)
        return self.alternate.evaluate(env)

    def names(self) -> List[str]:
        return self.test.names() + self.consequent.names() + self.alternate.names()


@dataclass(frozen=True)
class Call:
    function: str
    args: Tuple[Any, ...]

    def evaluate(self, env: Mapping[str, Value]) -> Value:
        func, _, _ = FUNCTIONS[self.function]
        values = [_number(arg.evaluate(env), self.function) for arg in self.args]
        return func(*values)

    def names(self) -> List[str]:
        collected: List[str] = []
        for arg in self.args:
            collected.extend(arg.names())
        return collected


def _equal(left: Value, right: Value) -> bool:
    if isinstance(left, str) or isinstance(right, str):
        return left == right
    return float(left) == float(right)


def _compare(op: str, a: Any, b: Any) -> bool:
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    if op == ">":
        return a > b
    return a >= b


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>'[^']*'|"[^"]*")
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||\*\*|[-+*/%<>!?:(),.])
    """,
    re.VERBOSE,
)


def tokenize(text: str) -> List[Token]:
    """Split formula text into tokens.

    Raises:
        FormulaSyntaxError: On a character the grammar does not know
    """
    tokens: List[Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if not match:
            raise FormulaSyntaxError(
                f"Unexpected character {text[position]!r}", text, position
            )
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(), position))
        position = match.end()
    tokens.append(Token("eof", "", len(text)))
    return tokens


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

# Deepest parenthesis, ternary or unary nesting a formula may use
MAX_NESTING_DEPTH = 64

_EQUALITY_OPS = ("===", "!==", "==", "!=")
_COMPARISON_OPS = ("<", "<=", ">", ">=")


class Parser:
    """Builds an expression tree from a token stream."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0
        self.depth = 0

    def parse(self):
        if self._peek().kind == "eof":
            raise FormulaSyntaxError("Empty expression", self.text, 0)
        node = self._conditional()
        token = self._peek()
        if token.kind != "eof":
            raise self._error(f"Unexpected token {token.text!r}", token)
        return node

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _match_op(self, *ops: str) -> Optional[Token]:
        token = self._peek()
        if token.kind == "op" and token.text in ops:
            return self._advance()
        return None

    def _expect_op(self, op: str) -> Token:
        token = self._peek()
        if token.kind == "op" and token.text == op:
            return self._advance()
        found = token.text or "end of expression"
        raise self._error(f"Expected {op!r} but found {found!r}", token)

    def _error(self, message: str, token: Token) -> FormulaSyntaxError:
        return FormulaSyntaxError(message, self.text, token.position)

    def _nest(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise self._error("Expression nested too deeply", self._peek())

    def _conditional(self):
        self._nest()
        try:
            test = self._or()
            if self._match_op("?"):
                consequent = self._conditional()
                self._expect_op(":")
                alternate = self._conditional()
                return Conditional(test, consequent, alternate)
            return test
        finally:
            self.depth -= 1

    def _or(self):
        node = self._and()
        while self._match_op("||"):
            node = Logical("||", node, self._and())
        return node

    def _and(self):
        node = self._equality()
        while self._match_op("&&"):
            node = Logical("&&", node, self._equality())
        return node

    def _equality(self):
        node = self._comparison()
        while True:
            token = self._match_op(*_EQUALITY_OPS)
            if not token:
                return node
            node = Binary(token.text, node, self._comparison())

    def _comparison(self):
        node = self._additive()
        while True:
            token = self._match_op(*_COMPARISON_OPS)
            if not token:
                return node
            node = Binary(token.text, node, self._additive())

    def _additive(self):
        node = self._multiplicative()
        while True:
            token = self._match_op("+", "-")
            if not token:
                return node
            node = Binary(token.text, node, self._multiplicative())

    def _multiplicative(self):
        node = self._unary()
        while True:
            token = self._match_op("*", "/", "%")
            if not token:
                return node
            node = Binary(token.text, node, self._unary())

    def _unary(self):
        self._nest()
        try:
            token = self._match_op("-", "+", "!")
            if token:
                return Unary(token.text, self._unary())
            return self._power()
        finally:
            self.depth -= 1

    def _power(self):
        base = self._primary()
        if self._match_op("**"):
            return Binary("**", base, self._unary())
        return base

    def _primary(self):
        token = self._advance()

        if token.kind == "number":
            return Literal(float(token.text))
        if token.kind == "string":
            return Literal(token.text[1:-1])
        if token.kind == "op" and token.text == "(":
            node = self._conditional()
            self._expect_op(")")
            return node
        if token.kind == "name":
            if token.text == MATH_NAMESPACE:
                return self._math_member(token)
            if self._peek().kind == "op" and self._peek().text == "(":
                return self._call(token)
            if self._peek().kind == "op" and self._peek().text == ".":
                raise self._error(f"Member access on {token.text!r}", self._peek())
            return Name(token.text)

        found = token.text or "end of expression"
        raise self._error(f"Unexpected token {found!r}", token)

    def _math_member(self, namespace: Token):
        self._expect_op(".")
        member = self._advance()
        if member.kind != "name":
            raise self._error("Expected a name after 'Math.'", member)
        if self._peek().kind == "op" and self._peek().text == "(":
            return self._call(member)
        if member.text in ("PI", "E"):
            return Literal(CONSTANTS[member.text])
        raise self._error(f"Unknown Math member {member.text!r}", member)

    def _call(self, name: Token):
        if name.text not in FUNCTIONS:
            raise self._error(f"Unknown function {name.text!r}", name)
        self._expect_op("(")
        args = []
        if not self._match_op(")"):
            args.append(self._conditional())
            while self._match_op(","):
                args.append(self._conditional())
            self._expect_op(")")

        _, min_args, max_args = FUNCTIONS[name.text]
        if len(args) < min_args or (max_args is not None and len(args) > max_args):
            raise self._error(
                f"{name.text}() takes {min_args}"
                + ("" if max_args == min_args else "+")
                + f" argument(s), got {len(args)}",
                name,
            )
        return Call(name.text, tuple(args))


@functools.lru_cache(maxsize=512)
def compile_expression(text: str):
    """Parse expression text into an evaluable tree.

    Results are cached per text since the same outcome and edge formulas
    are evaluated on every Monte Carlo iteration.

    Raises:
        FormulaSyntaxError: If the text does not match the grammar
    """
    return Parser(text).parse()

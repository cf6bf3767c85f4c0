import os
import re
import math
import logging
from decimal import Decimal
from typing import NamedTuple
from pint import UnitRegistry

logger = logging.getLogger(__name__)

ureg = UnitRegistry()
Q_ = ureg.Quantity

# Decimal number as typed by the user: 12, 12.5 (no leading-dot forms)
NUMBER = r"(\d+(?:\.\d+)?)"
OPERATORS = "+-*/"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ExpressionError(ValueError):
    """Base class for every recoverable failure of the calculator pipeline."""
    message = "Invalid mathematical expression"

    def __init__(self, message=None):
        super().__init__(message or self.message)


class EmptyExpressionError(ExpressionError):
    message = "Empty expression"


class InvalidCharactersError(ExpressionError):
    message = "Unsupported characters in expression"


class DoubledOperatorError(ExpressionError):
    message = "Double operators not allowed (e.g., ++, --, **, //)"


class ConsecutiveOperatorsError(DoubledOperatorError):
    message = "Consecutive operators not allowed"


class LeadingOperatorError(ExpressionError):
    message = "Expression cannot start with an operator"


class TrailingOperatorError(ExpressionError):
    message = "Expression cannot end with an operator"


class UnbalancedParenthesesError(ExpressionError):
    message = "Unbalanced parentheses"


class SyntacticDivisionByZeroError(ExpressionError):
    message = "Division by zero"


class NonFiniteResultError(ExpressionError):
    message = "Invalid calculation result"


class MalformedExpressionError(ExpressionError):
    message = "Invalid mathematical expression"


class EvaluationOutcome(NamedTuple):
    result: str
    steps: list
    transformed: str


# ---------------------------------------------------------------------------
# Number display
# ---------------------------------------------------------------------------

def format_number(value):
    """
    Render a float the way a calculator display shows it: '120' rather than
    '120.0', shortest round-trip digits otherwise, positional notation between
    1e-6 and 1e21 and exponent notation ('1e-7', '1e+21') outside that range.
    """
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, exponent = text.split("e")
    exponent = int(exponent)
    if -7 < exponent < 21:
        return format(Decimal(text), "f")
    sign = "+" if exponent > 0 else "-"
    return f"{mantissa}e{sign}{abs(exponent)}"


def format_result(value):
    """Integer string for whole values, otherwise rounded half-up to 6 decimals."""
    if value.is_integer():
        return format_number(value)
    rounded = math.floor(value * 1000000 + 0.5) / 1000000
    return format_number(rounded)


# ---------------------------------------------------------------------------
# Stage 1: natural language phrases
# ---------------------------------------------------------------------------

def hours_to_minutes(hours):
    return Q_(hours, ureg.hour).to(ureg.minute).magnitude


def normalize_natural_language(expression):
    """
    Rewrites percent and time phrases into arithmetic.

    Order matters: 'X% of Y', 'add X% to Y' and 'subtract X% from Y' are
    matched first, then hours, then minutes. The whole input is lower-cased
    before any matching. Returns (text, explanations).
    """
    text = str(expression or "").strip().lower()
    explanations = []

    def percent_of(match):
        a, b = match.group(1), match.group(2)
        explanations.append(f'🧮 "X% of Y" pattern: {a}% of {b} → {a}% × {b}')
        return f"{a}% * {b}"

    def add_percent(match):
        pct, base = match.group(1), match.group(2)
        explanations.append(f'➕ "Add X% to Y" pattern: add {pct}% to {base} → {base} + {pct}%')
        return f"{base} + {pct}%"

    def subtract_percent(match):
        pct, base = match.group(1), match.group(2)
        explanations.append(f'➖ "Subtract X% from Y" pattern: subtract {pct}% from {base} → {base} - {pct}%')
        return f"{base} - {pct}%"

    text = re.sub(rf"{NUMBER}%\s+of\s+{NUMBER}", percent_of, text, flags=re.ASCII)
    text = re.sub(rf"add\s+{NUMBER}%\s+to\s+{NUMBER}", add_percent, text, flags=re.ASCII)
    text = re.sub(rf"subtract\s+{NUMBER}%\s+from\s+{NUMBER}", subtract_percent, text, flags=re.ASCII)

    # Minutes are only explained when no hour phrase is present at all, so a
    # mixed "2 hours + 30 mins" is explained once.
    mentions_hours = "hour" in text

    def hours_phrase(match):
        h = match.group(1)
        hours = float(h)
        minutes = format_number(hours_to_minutes(hours))
        plural = "s" if hours != 1 else ""
        explanations.append(f"⏰ Time conversion: {h} hour{plural} = {h} × 60 = {minutes} minutes")
        return f"({h} * 60)"

    def minutes_phrase(match):
        m = match.group(1)
        if not mentions_hours:
            plural = "s" if float(m) != 1 else ""
            explanations.append(f"⏱️ Time unit: {m} minute{plural} = {m} minutes")
        return m

    text = re.sub(rf"{NUMBER}\s*hours?", hours_phrase, text, flags=re.ASCII)
    text = re.sub(rf"{NUMBER}\s*min(?:ute)?s?", minutes_phrase, text, flags=re.ASCII)

    logger.debug("normalized %r -> %r", expression, text)
    return text, explanations


# ---------------------------------------------------------------------------
# Stage 2: percent notation
# ---------------------------------------------------------------------------

def transform_percents(expression):
    """Returns (arithmetic, notes) with every '%' rewritten as a division by 100."""
    notes = []

    def base_percent(match):
        base, op, pct = match.group(1), match.group(2), match.group(3)
        base_num = float(base)
        percentage_value = base_num * float(pct) / 100
        if op == "+":
            final_value = base_num + percentage_value
        else:
            final_value = base_num - percentage_value
        form = f"{base} {op} ({base} * {pct} / 100)"
        notes.append(f"💰 Percent calculation: {base} {op} {pct}%")
        notes.append(f"   → {pct}% of {base} = {base} × {pct} ÷ 100 = {format_number(percentage_value)}")
        notes.append(f"   → {base} {op} {format_number(percentage_value)} = {format_number(final_value)}")
        notes.append(f"   → Mathematical form: {form}")
        return form

    def standalone_percent(match):
        x = match.group(1)
        form = f"({x} / 100)"
        notes.append(f"📊 Percent to decimal: {x}%")
        notes.append(f"   → {x}% = {x} ÷ 100 = {format_number(float(x) / 100)}")
        notes.append(f"   → Mathematical form: {form}")
        return form

    # Pass A removes the '%' from what it rewrites, so pass B never sees it.
    text = re.sub(rf"{NUMBER}\s*([+\-])\s*{NUMBER}%", base_percent, expression, flags=re.ASCII)
    text = re.sub(rf"{NUMBER}%", standalone_percent, text, flags=re.ASCII)

    logger.debug("percents %r -> %r", expression, text)
    return text, notes


# ---------------------------------------------------------------------------
# Stage 3: validation
# ---------------------------------------------------------------------------

def validate_expression(expression):
    """
    Checks the arithmetic string and returns it trimmed, or raises the first
    ExpressionError found. The zero-division check is purely textual: '/0'
    not followed by '.' is rejected, '/ 0' and '/(0)' are not caught here.
    """
    text = expression.strip()
    if not text:
        raise EmptyExpressionError()
    if not re.fullmatch(r"[0-9+\-*/().\s]+", text):
        raise InvalidCharactersError()
    if any(pair in text for pair in ("++", "--", "**", "//")):
        raise DoubledOperatorError()
    if text[0] in OPERATORS:
        raise LeadingOperatorError()
    if text[-1] in OPERATORS:
        raise TrailingOperatorError()
    if re.search(r"[+\-*/]{2,}", text):
        raise ConsecutiveOperatorsError()

    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if depth < 0:
            raise UnbalancedParenthesesError()
    if depth != 0:
        raise UnbalancedParenthesesError()

    if re.search(r"/0(?!\.)", text):
        raise SyntacticDivisionByZeroError()
    return text


# ---------------------------------------------------------------------------
# Stage 4: evaluation
# ---------------------------------------------------------------------------

def tokenize(expression):
    tokens = []
    i = 0
    while i < len(expression):
        char = expression[i]
        if char.isspace():
            i += 1
            continue
        if char in OPERATORS or char in "()":
            tokens.append(char)
            i += 1
            continue
        match = re.match(r"\d+\.?\d*|\.\d+", expression[i:], flags=re.ASCII)
        if not match:
            raise MalformedExpressionError()
        tokens.append(match.group(0))
        i += match.end()
    return tokens


def divide(left, right):
    """IEEE division: x/0.0 is +-inf and 0/0 is nan instead of an exception."""
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


class ArithmeticParser:
    """
    Recursive descent over the four operators and parentheses.

        expression := term (('+' | '-') term)*
        term       := factor (('*' | '/') factor)*
        factor     := ('+' | '-') factor | NUMBER | '(' expression ')'
    """

    def __init__(self, tokens):
        self.tokens = tokens
        self.pos = 0

    def peek(self):
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def take(self):
        token = self.peek()
        if token is None:
            raise MalformedExpressionError()
        self.pos += 1
        return token

    def parse(self):
        value = self.expression()
        if self.peek() is not None:
            raise MalformedExpressionError()
        return value

    def expression(self):
        value = self.term()
        while self.peek() in ("+", "-"):
            op = self.take()
            right = self.term()
            value = value + right if op == "+" else value - right
        return value

    def term(self):
        value = self.factor()
        while self.peek() in ("*", "/"):
            op = self.take()
            right = self.factor()
            value = value * right if op == "*" else divide(value, right)
        return value

    def factor(self):
        token = self.take()
        if token == "+":
            return self.factor()
        if token == "-":
            return -self.factor()
        if token == "(":
            value = self.expression()
            if self.take() != ")":
                raise MalformedExpressionError()
            return value
        if token in OPERATORS or token == ")":
            raise MalformedExpressionError()
        return float(token)


def evaluate_arithmetic(expression):
    """Parses and computes without any finiteness check."""
    try:
        return ArithmeticParser(tokenize(expression)).parse()
    except RecursionError:
        raise MalformedExpressionError()


def evaluate_safe(expression):
    text = validate_expression(expression)
    value = evaluate_arithmetic(text)
    if math.isnan(value) or math.isinf(value):
        raise NonFiniteResultError()
    return value


# ---------------------------------------------------------------------------
# Stage 5: display trace
# ---------------------------------------------------------------------------

def _reduce_pairs(expr, operators, describe, steps):
    # A '-' at the very start belongs to the number: "-1-3" reduces as -1 - 3
    pattern = rf"((?:^-)?\d+(?:\.\d+)?)\s*([{operators}])\s*{NUMBER}"
    remaining = len(expr) + 1
    while re.search(rf"[{operators}]", expr):
        match = re.search(pattern, expr, flags=re.ASCII)
        if not match:
            break
        remaining -= 1
        if remaining < 0:
            raise MalformedExpressionError()
        left, op, right = match.group(1), match.group(2), match.group(3)
        if op == "*":
            value = float(left) * float(right)
        elif op == "/":
            value = divide(float(left), float(right))
        elif op == "+":
            value = float(left) + float(right)
        else:
            value = float(left) - float(right)
        shown = format_number(value)
        steps.append(f"{describe[op]}: {left} {op} {right} = {shown}")
        expr = expr[:match.start()] + shown + expr[match.end():]
    return expr


def detailed_evaluation_steps(expression):
    """
    Display-only breakdown: innermost parentheses first, then the first
    '*'/'/' pair, then the first '+'/'-' pair, one line per reduction.
    Falls back to a single line if the intermediate text stops making sense.
    """
    steps = []
    try:
        expr = re.sub(r"\s+", "", expression)

        while "(" in expr:
            last_open = expr.rfind("(")
            close_index = expr.find(")", last_open)
            if close_index == -1:
                break
            inner = expr[last_open + 1:close_index]
            inner_value = format_number(evaluate_arithmetic(inner))
            steps.append(f"🔍 Evaluating parentheses: ({inner}) = {inner_value}")
            expr = expr[:last_open] + inner_value + expr[close_index + 1:]

        expr = _reduce_pairs(expr, r"*/", {"*": "🔢 Multiplication", "/": "🔢 Division"}, steps)
        _reduce_pairs(expr, r"+\-", {"+": "➕➖ Addition", "-": "➕➖ Subtraction"}, steps)
        return steps
    except (ValueError, ArithmeticError) as e:
        logger.debug("trace fell back for %r: %s", expression, e)
        return [f"🔍 Evaluation: {expression}"]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def evaluate_expression(expression):
    """
    Runs the whole pipeline and never raises.

    Returns EvaluationOutcome(result, steps, transformed): result is '' for
    blank input, the formatted number on success, or 'Error: <message>'.
    """
    if not str(expression or "").strip():
        return EvaluationOutcome("", [], "")

    original = expression.strip()
    steps = [f'📝 Original expression: "{original}"']

    natural, explanations = normalize_natural_language(expression)
    if natural != original:
        steps.append("🔄 Natural language processing detected:")
        steps.extend(explanations)
        steps.append(f'🔄 Final conversion: "{original}" → "{natural}"')

    transformed, notes = transform_percents(natural)
    steps.extend(notes)
    if transformed != natural:
        steps.append(f"📊 Mathematical expression: {transformed}")

    try:
        value = evaluate_safe(transformed)
    except ExpressionError as e:
        logger.debug("evaluation of %r failed: %s", transformed, e)
        steps.append(f"❌ Error: {e}")
        return EvaluationOutcome(f"Error: {e}", steps, transformed)

    steps.extend(detailed_evaluation_steps(transformed))
    formatted = format_result(value)
    steps.append(f"✅ Final result: {formatted}")
    return EvaluationOutcome(formatted, steps, transformed)


# Terminal loop
def step_calculator_cli():
    print("Hello! I'm your step-by-step calculator. Try '200 + 10%' or '15% of 42'.")
    while True:
        try:
            user_input = input("You: ")
        except EOFError:
            break
        if user_input.strip().lower() in ["exit", "quit", "bye"]:
            print("Calculator: Goodbye!")
            break

        outcome = evaluate_expression(user_input)
        for step in outcome.steps:
            print(f"  {step}")
        print(f"Calculator: {outcome.result}")


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("CALC_LOG_LEVEL", "WARNING").upper())
    step_calculator_cli()

"""
Tests for detailed_evaluation_steps

The trace is display-only: parentheses first, then * and /, then + and -.
"""

from step_calculator import detailed_evaluation_steps


class TestReductionOrder:
    """One line per reduction, in precedence order"""

    def test_multiplication_before_addition(self) -> None:
        assert detailed_evaluation_steps("2+3*4") == [
            "🔢 Multiplication: 3 * 4 = 12",
            "➕➖ Addition: 2 + 12 = 14",
        ]

    def test_innermost_parentheses_first(self) -> None:
        assert detailed_evaluation_steps("((2 * 60) + 30) * 2") == [
            "🔍 Evaluating parentheses: (2*60) = 120",
            "🔍 Evaluating parentheses: (120+30) = 150",
            "🔢 Multiplication: 150 * 2 = 300",
        ]

    def test_percent_form(self) -> None:
        assert detailed_evaluation_steps("200 + (200 * 10 / 100)") == [
            "🔍 Evaluating parentheses: (200*10/100) = 20",
            "➕➖ Addition: 200 + 20 = 220",
        ]

    def test_division_and_subtraction(self) -> None:
        assert detailed_evaluation_steps("10/4 - 1") == [
            "🔢 Division: 10 / 4 = 2.5",
            "➕➖ Subtraction: 2.5 - 1 = 1.5",
        ]

    def test_left_to_right(self) -> None:
        assert detailed_evaluation_steps("8/2*3") == [
            "🔢 Division: 8 / 2 = 4",
            "🔢 Multiplication: 4 * 3 = 12",
        ]


class TestSoftFailure:
    """Odd intermediate states never raise"""

    def test_single_number_has_no_steps(self) -> None:
        assert detailed_evaluation_steps("5") == []

    def test_negative_group_stops_cleanly(self) -> None:
        assert detailed_evaluation_steps("2*(-3)") == ["🔍 Evaluating parentheses: (-3) = -3"]

    def test_unparseable_group_falls_back(self) -> None:
        assert detailed_evaluation_steps("(1+)") == ["🔍 Evaluation: (1+)"]

    def test_fallback_replaces_earlier_steps(self) -> None:
        assert detailed_evaluation_steps("(2*3)+(4+)") == ["🔍 Evaluation: (2*3)+(4+)"]

    def test_deterministic(self) -> None:
        expression = "(1.5 + 2.25) * 4 - 6 / 3"
        assert detailed_evaluation_steps(expression) == detailed_evaluation_steps(expression)


class TestNegativeIntermediates:
    """A negative running value stays attached to its sign"""

    def test_chained_subtraction(self) -> None:
        assert detailed_evaluation_steps("1-2-3") == [
            "➕➖ Subtraction: 1 - 2 = -1",
            "➕➖ Subtraction: -1 - 3 = -4",
        ]

    def test_negative_group_then_product(self) -> None:
        assert detailed_evaluation_steps("(0-3)*2") == [
            "🔍 Evaluating parentheses: (0-3) = -3",
            "🔢 Multiplication: -3 * 2 = -6",
        ]

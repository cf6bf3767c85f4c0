"""
Tests for the explanation hand-off

The text-generation pipeline is replaced by fakes; no model is downloaded.
"""

import pytest

import explainer
from explainer import (
    NO_EXPLANATION,
    build_prompt,
    explainer_enabled,
    fallback_explanation,
    get_explanation,
)
from step_calculator import evaluate_expression


@pytest.fixture
def fake_pipeline(monkeypatch):
    """Installs a fake pipeline factory; returns the list of created generators."""
    created = []

    def install(reply=None, error=None, load_error=None):
        def factory(task, model=None):
            if load_error is not None:
                raise load_error
            calls = []

            def generator(prompt, **kwargs):
                calls.append((prompt, kwargs))
                if error is not None:
                    raise error
                return [{"generated_text": reply}]

            generator.calls = calls
            created.append((task, model, generator))
            return generator

        monkeypatch.setattr(explainer, "pipeline", factory)
        monkeypatch.setattr(explainer, "_generators", {})
        return created

    return install


class TestFallback:
    """Surface features of the expression pick the paragraphs"""

    def test_percent_and_addition(self) -> None:
        text = fallback_explanation("200 + 10%", "220", [])
        assert "**Percentage Calculation**" in text
        assert "**Addition/Subtraction**" in text
        assert "**Order of Operations**" not in text
        assert "**Multiplication/Division**" not in text

    def test_parentheses_and_products(self) -> None:
        text = fallback_explanation("(2+3)*4")
        paragraphs = text.split("\n\n")
        assert [p.split("**")[1] for p in paragraphs] == [
            "Order of Operations",
            "Multiplication/Division",
            "Addition/Subtraction",
            "Tips",
            "Verification",
        ]

    def test_tips_always_present(self) -> None:
        paragraphs = fallback_explanation("7").split("\n\n")
        assert len(paragraphs) == 2
        assert paragraphs[0].startswith("💡 **Tips**")


class TestPrompt:
    """Prompt carries expression, result and numbered steps"""

    def test_build_prompt(self) -> None:
        outcome = evaluate_expression("200 + 10%")
        prompt = build_prompt("200 + 10%", outcome.result, outcome.steps)
        assert "Expression: 200 + 10%" in prompt
        assert "Result: 220" in prompt
        assert '1. 📝 Original expression: "200 + 10%"' in prompt
        assert f"{len(outcome.steps)}. ✅ Final result: 220" in prompt
        assert prompt.endswith("Explanation:")


class TestGetExplanation:
    """Model output when available, fallback on every failure"""

    def test_disabled(self) -> None:
        assert not explainer_enabled("none")
        assert not explainer_enabled("")
        text = get_explanation("2+2", "4", [], model="none")
        assert text.startswith(fallback_explanation("2+2"))
        assert "⚠️" in text

    def test_generated_text(self, fake_pipeline) -> None:
        created = fake_pipeline(reply="  Ten percent of 200 is 20.  ")
        text = get_explanation("200 + 10%", "220", ["step"], model="tiny-model")
        assert text == "Ten percent of 200 is 20."
        task, model, generator = created[0]
        assert (task, model) == ("text-generation", "tiny-model")
        _, kwargs = generator.calls[0]
        assert kwargs["return_full_text"] is False
        assert kwargs["max_new_tokens"] == explainer.EXPLAINER_MAX_NEW_TOKENS

    def test_empty_generation(self, fake_pipeline) -> None:
        fake_pipeline(reply="   ")
        assert get_explanation("2+2", "4", [], model="tiny-model") == NO_EXPLANATION

    def test_model_loaded_once(self, fake_pipeline) -> None:
        created = fake_pipeline(reply="ok")
        get_explanation("2+2", "4", [], model="tiny-model")
        get_explanation("3+3", "6", [], model="tiny-model")
        assert len(created) == 1

    def test_load_failure_falls_back(self, fake_pipeline) -> None:
        fake_pipeline(load_error=OSError("not found"))
        text = get_explanation("(2+3)*4", "20", [], model="missing-model")
        assert text.startswith(fallback_explanation("(2+3)*4"))
        assert "❌ **Model Unavailable**" in text

    def test_generation_failure_falls_back(self, fake_pipeline) -> None:
        fake_pipeline(error=RuntimeError("boom"))
        text = get_explanation("2+2", "4", [], model="tiny-model")
        assert text.startswith(fallback_explanation("2+2"))
        assert "❌ **Explainer Error**: boom." in text

import os
import logging
from transformers import pipeline

logging.getLogger("transformers").setLevel(logging.ERROR)
logger = logging.getLogger(__name__)

EXPLAINER_MODEL = os.environ.get("CALC_EXPLAINER_MODEL", "distilgpt2")
EXPLAINER_MAX_NEW_TOKENS = int(os.environ.get("CALC_EXPLAINER_MAX_NEW_TOKENS", 500))
EXPLAINER_TEMPERATURE = float(os.environ.get("CALC_EXPLAINER_TEMPERATURE", 0.7))

SYSTEM_PROMPT = ("You are a helpful math tutor. Provide clear, educational explanations "
                 "of mathematical calculations with step-by-step reasoning.")

NO_EXPLANATION = "Sorry, I couldn't generate an explanation at this time."

_generators = {}


def explainer_enabled(model=None):
    model = EXPLAINER_MODEL if model is None else model
    return bool(model) and model.strip().lower() != "none"


def fallback_explanation(expression, result=None, steps=None):
    """
    Generic notes derived only from the surface of the expression, so there is
    always something to show when no model is available.
    """
    explanations = []
    if "%" in expression:
        explanations.append("📊 **Percentage Calculation**: This involves converting percentages "
                            "to decimals and performing arithmetic operations.")
    if "(" in expression and ")" in expression:
        explanations.append("🔍 **Order of Operations**: Parentheses are evaluated first, following "
                            "the PEMDAS rule (Parentheses, Exponents, Multiplication, Division, "
                            "Addition, Subtraction).")
    if "*" in expression or "/" in expression:
        explanations.append("🔢 **Multiplication/Division**: These operations have higher precedence "
                            "than addition and subtraction.")
    if "+" in expression or "-" in expression:
        explanations.append("➕➖ **Addition/Subtraction**: These are performed after higher "
                            "precedence operations.")

    explanations.append("💡 **Tips**: Always follow the order of operations (PEMDAS) for accurate results.")
    explanations.append("🧮 **Verification**: You can verify your answer by working backwards "
                        "or using different calculation methods.")
    return "\n\n".join(explanations)


def build_prompt(expression, result, steps):
    numbered = "\n".join(f"{i}. {step}" for i, step in enumerate(steps, start=1))
    return f"""{SYSTEM_PROMPT}

Please provide a clear, educational explanation for this math calculation:

Expression: {expression}
Result: {result}

Step-by-step breakdown:
{numbered}

Please explain:
1. What mathematical concepts are being used
2. Why each step is necessary
3. Any shortcuts or tricks that could help
4. Real-world applications if applicable

Keep the explanation concise but educational, suitable for someone learning math.

Explanation:"""


def get_generator(model=None):
    """Text-generation pipeline, loaded on first use and kept for the process."""
    model = model or EXPLAINER_MODEL
    if model not in _generators:
        logger.info("loading explanation model %s", model)
        _generators[model] = pipeline("text-generation", model=model)
    return _generators[model]


def generate_explanation(expression, result, steps, model=None):
    prompt = build_prompt(expression, result, steps)
    generator = get_generator(model)
    outputs = generator(
        prompt,
        max_new_tokens=EXPLAINER_MAX_NEW_TOKENS,
        do_sample=True,
        temperature=EXPLAINER_TEMPERATURE,
        return_full_text=False,
    )
    text = outputs[0].get("generated_text", "") if outputs else ""
    return text.strip() or NO_EXPLANATION


def get_explanation(expression, result, steps, model=None):
    """
    Prose explanation of a finished calculation. Never raises: any failure of
    the model degrades to fallback_explanation plus a note on what went wrong.
    """
    if not explainer_enabled(model):
        return (fallback_explanation(expression, result, steps)
                + "\n\n⚠️ For enhanced AI explanations, set CALC_EXPLAINER_MODEL to a "
                  "text-generation model.")
    try:
        return generate_explanation(expression, result, steps, model=model)
    except OSError as e:
        logger.warning("explanation model could not be loaded: %s", e)
        return (fallback_explanation(expression, result, steps)
                + "\n\n❌ **Model Unavailable**: The explanation model could not be loaded. "
                  "Check CALC_EXPLAINER_MODEL and your network connection.")
    except Exception as e:
        logger.warning("explanation failed: %s", e)
        return (fallback_explanation(expression, result, steps)
                + f"\n\n❌ **Explainer Error**: {str(e) or 'Unknown error'}. Using fallback explanation above.")

import gradio as gr
import os
import re
import time
import logging
from datetime import datetime
from step_calculator import evaluate_expression, OPERATORS
from explainer import get_explanation

logger = logging.getLogger(__name__)

HISTORY_LIMIT = int(os.environ.get("CALC_HISTORY_LIMIT", 30))
HISTORY_HEADERS = ["Time", "Expression", "Result"]

STEPS_PLACEHOLDER = "_Type an expression to see detailed step-by-step explanation..._"
EXPLANATION_PLACEHOLDER = "_Click the 🤖 button to get an AI-powered explanation of your calculation_"


def press_key(expression, token):
    """Keypad input: no operator after an operator, one decimal point per number."""
    expression = expression or ""
    if token in OPERATORS and expression.endswith(tuple(OPERATORS)):
        return expression
    if token == ".":
        current_number = re.split(r"[+\-*/()]", expression)[-1]
        if "." in current_number:
            return expression
    return expression + token


def backspace(expression):
    return (expression or "")[:-1]


def clear_expression():
    return ""


def render_steps(steps):
    if not steps:
        return STEPS_PLACEHOLDER
    return "\n".join(f"- `{step}`" for step in steps)


def live_update(expression):
    """Result and steps for whatever is currently typed."""
    outcome = evaluate_expression(expression)
    result_md = f"## = {outcome.result}" if outcome.result != "" else ""
    return result_md, render_steps(outcome.steps)


def add_history(history, expression, result, timestamp=None):
    """Newest first, capped at HISTORY_LIMIT. Blank results are not recorded."""
    if result == "":
        return history
    entry = (expression, result, time.time() if timestamp is None else timestamp)
    return ([entry] + list(history))[:HISTORY_LIMIT]


def render_history(history):
    return [[datetime.fromtimestamp(ts).strftime("%H:%M:%S"), expr, f"= {result}"]
            for expr, result, ts in history]


def compute(expression, history):
    outcome = evaluate_expression(expression)
    history = add_history(history, expression, outcome.result)
    return history, render_history(history)


def clear_history():
    return [], []


def clear_explanation():
    return EXPLANATION_PLACEHOLDER


def load_history_entry(history, evt: gr.SelectData):
    row = evt.index[0] if isinstance(evt.index, (list, tuple)) else evt.index
    return history[row][0]


def explain(expression):
    if not (expression or "").strip():
        return EXPLANATION_PLACEHOLDER
    outcome = evaluate_expression(expression)
    return get_explanation(expression, outcome.result, outcome.steps)


BASE_CSS = """
#calc-row { gap: 20px; align-items: stretch; }
#expression-input textarea, #expression-input input {
    font-family: ui-monospace, Menlo, Consolas, monospace;
    font-size: 1.25rem;
}
#live-result { min-height: 48px; text-align: right; }
.keypad-row button { min-width: 0 !important; font-size: 1.1rem; }
.btn-op button, button.btn-op { background-color: #e2d4e5 !important; }
.btn-eq button, button.btn-eq {
    background-color: #7e4f9e !important;
    color: white !important;
    font-weight: bold;
}
#steps-panel, #explanation-panel { max-height: 60vh; overflow-y: auto; }
#steps-panel code { white-space: pre-wrap; }
.heading {
    text-align: center;
    font-size: 26px;
    padding-bottom: 12px;
    border-bottom: 2px solid #eee;
    margin-bottom: 10px;
}
"""

# (label, token, css class); None token marks the special keys
KEYPAD_ROWS = [
    [("AC", None, "btn-op"), ("⌫", None, "btn-op"), ("(", "(", "btn-op"), (")", ")", "btn-op")],
    [("7", "7", "btn-base"), ("8", "8", "btn-base"), ("9", "9", "btn-base"), ("÷", "/", "btn-op")],
    [("4", "4", "btn-base"), ("5", "5", "btn-base"), ("6", "6", "btn-base"), ("×", "*", "btn-op")],
    [("1", "1", "btn-base"), ("2", "2", "btn-base"), ("3", "3", "btn-base"), ("−", "-", "btn-op")],
    [("0", "0", "btn-base"), (".", ".", "btn-base"), ("%", "%", "btn-op"), ("+", "+", "btn-op")],
]


def build_demo():
    with gr.Blocks(css=BASE_CSS, title="Step Calculator") as demo:
        history = gr.State([])

        gr.Markdown("<div class='heading'>Step Calculator</div>")

        with gr.Row(elem_id="calc-row"):
            with gr.Column(scale=1):
                expression = gr.Textbox(
                    placeholder="Try: 200 + 10%  |  15% of 42  |  (2 hours + 30 mins)",
                    label="", elem_id="expression-input")
                live_result = gr.Markdown(elem_id="live-result")

                keypad = []
                for row in KEYPAD_ROWS:
                    with gr.Row(elem_classes="keypad-row"):
                        for label, token, css_class in row:
                            keypad.append((gr.Button(label, elem_classes=css_class), label, token))
                equals_btn = gr.Button("=", elem_classes="btn-eq")

            with gr.Column(scale=1):
                with gr.Accordion("Explanation", open=True):
                    steps_md = gr.Markdown(STEPS_PLACEHOLDER, elem_id="steps-panel")

                with gr.Accordion("🤖 AI Explanation", open=True):
                    with gr.Row():
                        explain_btn = gr.Button("🤖 Explain", elem_classes="btn-op")
                        clear_explanation_btn = gr.Button("🧹 Clear", elem_classes="btn-op")
                    explanation_md = gr.Markdown(EXPLANATION_PLACEHOLDER, elem_id="explanation-panel")

                gr.Markdown("### History")
                history_table = gr.Dataframe(headers=HISTORY_HEADERS, value=[], interactive=False)
                with gr.Row():
                    clear_history_btn = gr.Button("Clear", elem_classes="btn-op")

        # Events
        expression.change(live_update, [expression], [live_result, steps_md])
        expression.submit(compute, [expression, history], [history, history_table])
        equals_btn.click(compute, [expression, history], [history, history_table])

        for btn, label, token in keypad:
            if label == "AC":
                btn.click(clear_expression, outputs=[expression])
            elif label == "⌫":
                btn.click(backspace, [expression], [expression])
            else:
                btn.click(lambda expr, _token=token: press_key(expr, _token),
                          inputs=[expression], outputs=[expression])

        # Separate event: the result above is already shown while this runs
        explain_btn.click(explain, [expression], [explanation_md])

        clear_explanation_btn.click(clear_explanation, outputs=[explanation_md])
        clear_history_btn.click(clear_history, outputs=[history, history_table])
        history_table.select(load_history_entry, [history], [expression])

    return demo


def main():
    logging.basicConfig(level=os.environ.get("CALC_LOG_LEVEL", "WARNING").upper())
    port = int(os.environ.get("PORT", 8080))
    server_name = os.environ.get("CALC_SERVER_NAME", "0.0.0.0")
    logger.info("starting calculator UI on %s:%s", server_name, port)
    build_demo().launch(server_name=server_name, server_port=port, share=False)


if __name__ == "__main__":
    main()

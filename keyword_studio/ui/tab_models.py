"""
Models Tab for Keyword Studio.

Provides UI for:
- Listing, loading and deleting saved models
- Exporting the metadata.json of a saved model
- Live recognition with the active model
"""

import tempfile
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple

import gradio as gr

from keyword_studio.app import StudioContext
from keyword_studio.capability import RecognitionResult
from keyword_studio.exceptions import KeywordStudioError


class RecognitionLog:
    """Keeps the most recent recognition results for display."""

    def __init__(self, maxlen: int = 5):
        self.results: Deque[Tuple[List[str], RecognitionResult]] = deque(maxlen=maxlen)

    def clear(self) -> None:
        self.results.clear()

    def record(self, labels: List[str], result: RecognitionResult) -> None:
        self.results.appendleft((labels, result))

    def to_markdown(self, top_k: int = 3) -> str:
        if not self.results:
            return "*No predictions yet*"
        lines = []
        for labels, result in self.results:
            ranked = sorted(zip(labels, result.scores), key=lambda pair: pair[1], reverse=True)
            lines.append(" | ".join(f"{label}: {score:.2f}" for label, score in ranked[:top_k]))
        return "\n\n".join(lines)


def get_model_info(context: StudioContext, name: Optional[str]) -> str:
    if not name:
        return "Select a model to view details"
    return f"### {name}\n\n**Loaded:** {'yes' if context.loaded_model_name == name else 'no'}"


def create_models_tab(context: StudioContext) -> Dict[str, Any]:
    """
    Create the Models tab UI.

    Returns:
        Dictionary of key components.
    """
    components = {}
    log = RecognitionLog()

    gr.Markdown("### Saved Models")

    with gr.Row():
        with gr.Column(scale=1):
            models_dropdown = gr.Dropdown(
                choices=context.saved_models(),
                label="Saved models",
            )
            with gr.Row():
                refresh_btn = gr.Button("Refresh", size="sm")
                load_btn = gr.Button("Load")
                delete_btn = gr.Button("Delete", variant="stop")
            export_btn = gr.Button("Export metadata.json")
            metadata_file = gr.File(label="metadata.json", interactive=False)
            model_status = gr.Markdown("")

        with gr.Column(scale=1):
            gr.Markdown("**Live recognition**")
            with gr.Row():
                listen_btn = gr.Button("Start", variant="primary")
                stop_btn = gr.Button("Stop")
            listen_status = gr.Markdown("")
            predictions = gr.Markdown(log.to_markdown())
            timer = gr.Timer(1.0)

    def refresh_models():
        return gr.update(choices=context.saved_models())

    refresh_btn.click(fn=refresh_models, outputs=[models_dropdown])

    async def load_model(name: Optional[str]):
        if not name:
            return "No model selected"
        try:
            model = await context.load_model(name)
        except KeywordStudioError as e:
            return f"**Error:** {e}"
        return f"Loaded **{model.name}** ({', '.join(model.word_labels)})"

    load_btn.click(fn=load_model, inputs=[models_dropdown], outputs=[model_status])

    async def delete_model(name: Optional[str]):
        if not name:
            return "No model selected", gr.update()
        try:
            await context.delete_model(name)
        except KeywordStudioError as e:
            return f"**Error:** {e}", refresh_models()
        return f"Deleted: {name}", refresh_models()

    delete_btn.click(
        fn=delete_model,
        inputs=[models_dropdown],
        outputs=[model_status, models_dropdown],
    )

    async def export_metadata(name: Optional[str]):
        if not name:
            return "No model selected", None
        try:
            path = await context.models.export_metadata(name, Path(tempfile.mkdtemp()))
        except KeywordStudioError as e:
            return f"**Error:** {e}", None
        return f"Exported metadata of **{name}**", str(path)

    export_btn.click(
        fn=export_metadata,
        inputs=[models_dropdown],
        outputs=[model_status, metadata_file],
    )

    models_dropdown.change(
        fn=lambda name: get_model_info(context, name),
        inputs=[models_dropdown],
        outputs=[model_status],
    )

    async def start_listening():
        if context.is_listening():
            return "Already listening"
        labels = context.word_labels()
        log.clear()
        await context.start_listening(lambda result: log.record(labels, result))
        return "Streaming recognition started."

    async def stop_listening():
        if not context.is_listening():
            return "Not listening"
        await context.stop_listening()
        return "Streaming recognition stopped."

    listen_btn.click(fn=start_listening, outputs=[listen_status])
    stop_btn.click(fn=stop_listening, outputs=[listen_status])
    timer.tick(fn=log.to_markdown, outputs=[predictions])

    components["models_dropdown"] = models_dropdown
    components["predictions"] = predictions

    return components

"""
Session Tab for Keyword Studio.

Provides UI for:
- Naming the model and defining classes
- Recording examples per class
- Loading and downloading datasets
- Training with live progress and saving the result
"""

import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import gradio as gr

from keyword_studio.app import StudioContext
from keyword_studio.exceptions import KeywordStudioError
from keyword_studio.session.session import TransferSession
from keyword_studio.session.trainer import TrainingHistory
from keyword_studio.utils.audio_utils import calculate_db_level


def format_counts(session: Optional[TransferSession]) -> str:
    """Markdown table of examples per class."""
    if session is None:
        return "*No session yet. Enter a model name and classes, then click **Start Session**.*"

    controls = session.controls()
    counts = session.store.count_by_label()
    lines = [
        f"### {session.name}",
        "",
        "| Class | Examples | Status |",
        "|---|---|---|",
    ]
    for label in session.labels or list(counts):
        needed = controls.examples_needed.get(label, 0)
        status = "ready" if label in controls.ready_labels else f"needs {needed} more"
        if not session.registry.is_finalized:
            status = "-"
        lines.append(f"| {label} | {counts.get(label, 0)} | {status} |")
    lines.append("")
    lines.append(f"Duration multiplier: **{session.duration_multiplier}**")
    return "\n".join(lines)


def button_updates(session: Optional[TransferSession]) -> Tuple[Any, ...]:
    """Interactivity of the session buttons, derived from session state."""
    if session is None:
        return (
            gr.update(interactive=True),   # start session
            gr.update(interactive=False),  # record
            gr.update(interactive=False),  # train
            gr.update(interactive=False),  # save
            gr.update(interactive=False),  # download dataset
        )
    controls = session.controls()
    return (
        gr.update(interactive=controls.can_finalize_classes),
        gr.update(interactive=controls.can_record),
        gr.update(interactive=controls.can_train),
        gr.update(interactive=controls.can_save),
        gr.update(interactive=controls.can_download_dataset),
    )


def parse_class_list(text: str) -> List[str]:
    """One class per line or comma separated."""
    labels = []
    for line in (text or "").replace(",", "\n").splitlines():
        label = line.strip()
        if label and label not in labels:
            labels.append(label)
    return labels


def create_session_tab(context: StudioContext) -> Dict[str, Any]:
    """
    Create the Session tab UI.

    Returns:
        Dictionary of key components.
    """
    components = {}

    gr.Markdown("### Build a Classifier")

    with gr.Row():
        with gr.Column(scale=1):
            model_name = gr.Textbox(
                label="Model name",
                value=context.default_name(),
            )
            class_list = gr.Textbox(
                label="Classes (one per line)",
                placeholder="yes\nno",
                lines=4,
            )
            multiplier = gr.Dropdown(
                choices=["1", "2"],
                value=str(context.config.capture.duration_multiplier),
                label="Duration multiplier",
            )
            include_raw = gr.Checkbox(
                label="Include audio waveform",
                value=context.config.capture.include_raw_audio,
            )
            start_btn = gr.Button("Start Session", variant="primary")

            gr.Markdown("---")
            dataset_file = gr.File(label="Load dataset", file_types=[".kwds"])
            download_btn = gr.Button("Download Dataset")
            dataset_download = gr.File(label="Dataset file", interactive=False)

        with gr.Column(scale=1):
            counts_display = gr.Markdown(format_counts(None))
            record_class = gr.Dropdown(choices=[], label="Class to record")
            with gr.Row():
                record_btn = gr.Button("Record Sample", interactive=False)
                stop_btn = gr.Button("Stop", variant="stop")
            record_status = gr.Markdown("")

        with gr.Column(scale=1):
            epochs = gr.Number(value=context.config.training.epochs, precision=0, label="Epochs")
            fine_tuning_epochs = gr.Number(
                value=context.config.training.fine_tuning_epochs,
                precision=0,
                label="Fine-tuning epochs",
            )
            train_btn = gr.Button("Start Training", variant="primary", interactive=False)
            training_status = gr.Markdown("**Status:** Ready")
            metrics = gr.Dataframe(
                headers=["phase", "epoch", "train_loss", "val_loss", "train_acc", "val_acc"],
                label="Training metrics",
                interactive=False,
            )
            save_btn = gr.Button("Save Model", interactive=False)
            save_status = gr.Markdown("")
            metadata_download = gr.File(label="metadata.json", interactive=False)

    buttons = [start_btn, record_btn, train_btn, save_btn, download_btn]

    def refresh():
        session = context.session
        choices = session.labels if session and session.registry.is_finalized else []
        return (
            format_counts(session),
            gr.update(choices=choices, value=choices[0] if choices else None),
            *button_updates(session),
        )

    refresh_outputs = [counts_display, record_class, *buttons]

    def start_session(name: str, classes: str, duration_multiplier: str, raw: bool):
        try:
            session = context.session
            if session is None or session.registry.is_finalized or session.name != name:
                session = context.new_session(name)
            for label in parse_class_list(classes):
                if label not in session.registry:
                    session.add_class(label)
            session.duration_multiplier = int(duration_multiplier)
            context.config.capture.include_raw_audio = bool(raw)
            labels = session.finalize_classes()
            message = f"Classes: {', '.join(labels)}"
        except KeywordStudioError as e:
            message = f"**Error:** {e}"
        return (message, *refresh())

    start_btn.click(
        fn=start_session,
        inputs=[model_name, class_list, multiplier, include_raw],
        outputs=[record_status, *refresh_outputs],
    )

    async def record(label: str, raw: bool):
        session = context.session
        if session is None or not label:
            return ("**Error:** Start a session and pick a class first", *refresh())
        try:
            example = await session.collect_example(label, include_raw_audio=bool(raw))
            message = f"Recorded example {example.id} for **{label}** ({example.spectrogram.num_frames} frames)"
            if example.has_raw_audio:
                message += f", level {calculate_db_level(example.raw_audio.data):.1f} dB"
        except KeywordStudioError as e:
            message = f"**Error:** {e}"
        return (message, *refresh())

    record_btn.click(
        fn=record,
        inputs=[record_class, include_raw],
        outputs=[record_status, *refresh_outputs],
    )

    async def stop_recording():
        session = context.session
        if session is not None and await session.cancel_capture():
            return "Recording cancelled"
        return "Nothing is being recorded"

    stop_btn.click(fn=stop_recording, outputs=[record_status])

    async def train(n_epochs: float, n_fine_tuning: float):
        session = context.session
        if session is None:
            yield ("**Error:** No session", [], *button_updates(None))
            return
        history = TrainingHistory()
        try:
            config = session.training_config(
                epochs=int(n_epochs), fine_tuning_epochs=int(n_fine_tuning)
            )
            total = max(config.total_epochs, 1)
            async for progress in session.stream_training(config):
                history(progress)
                status = (
                    f"**Training model... ({(progress.epoch + 1) / total * 100:.0f}%)**\n\n"
                    f"- Phase: {progress.phase.value}\n"
                    f"- Epoch: {progress.epoch + 1}/{total}\n"
                    f"- Val accuracy: {progress.val_acc:.3f}"
                )
                rows = [list(row.values()) for row in history.rows()]
                yield (status, rows, *button_updates(session))
            status = "**Model training complete.**"
        except (KeywordStudioError, ValueError) as e:
            status = f"**Training failed:**\n\n{e}"
        rows = [list(row.values()) for row in history.rows()]
        yield (status, rows, *button_updates(session))

    train_btn.click(
        fn=train,
        inputs=[epochs, fine_tuning_epochs],
        outputs=[training_status, metrics, *buttons],
    )

    async def save(name: str):
        session = context.session
        if session is None:
            return "**Error:** No session", None
        try:
            model = await session.save_model(context.models, name or None)
        except KeywordStudioError as e:
            return f"**Error:** {e}", None
        path = Path(tempfile.mkdtemp()) / "metadata.json"
        session.export_metadata(path)
        return f"Model saved: **{model.name}**", str(path)

    save_btn.click(
        fn=save,
        inputs=[model_name],
        outputs=[save_status, metadata_download],
    )

    def download_dataset():
        session = context.session
        if session is None:
            return None
        path = Path(tempfile.mkdtemp()) / f"{session.name}.kwds"
        return str(session.save_dataset(path))

    download_btn.click(fn=download_dataset, outputs=[dataset_download])

    def upload_dataset(file_path: Optional[str], name: str):
        if not file_path:
            return ("", *refresh())
        try:
            session = context.session or context.new_session(name or None)
            loaded = session.load_dataset_file(Path(file_path))
            message = (
                f"Loaded {len(loaded.examples)} examples in {len(loaded.labels)} classes "
                f"(duration multiplier {loaded.duration_multiplier})"
            )
        except KeywordStudioError as e:
            message = f"**Error:** {e}"
        return (message, *refresh())

    dataset_file.upload(
        fn=upload_dataset,
        inputs=[dataset_file, model_name],
        outputs=[record_status, *refresh_outputs],
    )

    components["record_btn"] = record_btn
    components["train_btn"] = train_btn
    components["save_btn"] = save_btn
    components["counts_display"] = counts_display

    return components

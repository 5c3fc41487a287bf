"""
Keyword Studio - Gradio Web Interface

Main application entry point for the web UI.
"""

import logging
from typing import Optional

import gradio as gr

from keyword_studio.app import StudioContext
from keyword_studio.config import Config
from keyword_studio.ui.tab_models import create_models_tab
from keyword_studio.ui.tab_session import create_session_tab

logger = logging.getLogger(__name__)


def create_app(context: StudioContext) -> gr.Blocks:
    """
    Create the main Gradio application.

    Args:
        context: Application context shared by every tab.

    Returns:
        gr.Blocks: The Gradio application.
    """
    with gr.Blocks(
        title="Keyword Studio",
        theme=gr.themes.Soft(
            primary_hue="blue",
            secondary_hue="slate",
        ),
    ) as app:
        gr.Markdown(
            """
            # Keyword Studio
            Train a personalised keyword classifier
            """
        )

        with gr.Tabs():
            with gr.Tab("Session", id="session"):
                create_session_tab(context)

            with gr.Tab("Models", id="models"):
                create_models_tab(context)

    return app


def launch(
    config: Optional[Config] = None,
    context: Optional[StudioContext] = None,
    share: bool = False,
    server_port: int = 7860,
    server_name: str = "127.0.0.1",
    debug: bool = False
) -> None:
    """
    Launch the Gradio application.

    Args:
        config: Configuration used to build the context when none is given.
        context: Prepared application context.
        share: Create a public link.
        server_port: Port to run on.
        server_name: Server hostname.
        debug: Enable debug mode.
    """
    if context is None:
        context = StudioContext.from_config(config or Config.load())

    context.config.ensure_directories()
    logger.info("Serving Keyword Studio on %s:%d", server_name, server_port)

    app = create_app(context)
    app.launch(
        share=share,
        server_port=server_port,
        server_name=server_name,
        debug=debug,
        show_error=True,
    )

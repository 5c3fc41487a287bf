"""
UI modules for Keyword Studio.

Gradio-based web interface with:
- Session tab: classes, recording, datasets, training, saving
- Models tab: saved models and live recognition
"""

from keyword_studio.ui.gradio_app import create_app, launch
from keyword_studio.ui.tab_session import create_session_tab
from keyword_studio.ui.tab_models import create_models_tab

__all__ = [
    "create_app",
    "launch",
    "create_session_tab",
    "create_models_tab",
]

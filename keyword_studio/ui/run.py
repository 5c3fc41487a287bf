#!/usr/bin/env python3
"""
Launch script for Keyword Studio UI.

Usage:
    python -m keyword_studio.ui.run
    # or
    keyword_studio_ui
"""

import argparse
import logging
import sys
from pathlib import Path

from keyword_studio.config import Config
from keyword_studio.exceptions import KeywordStudioError


def main():
    parser = argparse.ArgumentParser(
        description="Launch Keyword Studio Web UI"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=7860,
        help="Port to run on (default: 7860)"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--settings",
        type=str,
        default=None,
        help="Settings file (default: ~/keyword_studio/settings.json)"
    )
    parser.add_argument(
        "--share",
        action="store_true",
        help="Create a public link"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    print("=" * 50)
    print("Keyword Studio")
    print("=" * 50)
    print(f"Starting server on http://{args.host}:{args.port}")
    if args.share:
        print("Creating public link...")
    print()

    from keyword_studio.ui import launch

    try:
        config = Config.load(Path(args.settings) if args.settings else None)
        launch(
            config=config,
            server_port=args.port,
            server_name=args.host,
            share=args.share,
            debug=args.debug
        )
    except KeywordStudioError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

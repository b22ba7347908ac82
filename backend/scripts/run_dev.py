#!/usr/bin/env python3
"""Development server runner for Quill.

Starts the transport bridge with auto-reload and debug logging.
"""

import os
import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent  # .../backend
repo_root = project_root.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))


def setup_dev_environment():
    """Set up development environment variables."""
    os.environ.setdefault("QUILL_ENVIRONMENT", "development")
    os.environ.setdefault("QUILL_DEBUG", "true")
    os.environ.setdefault("QUILL_LOG_LEVEL", "DEBUG")

    print("Development environment configured:")
    print(f"  Default provider: {os.environ.get('QUILL_DEFAULT_PROVIDER', 'ollama')}")
    print(f"  Ollama base: {os.environ.get('OLLAMA_BASE', 'http://127.0.0.1:11434')}")
    print(f"  OpenAI key set: {bool(os.environ.get('OPENAI_API_KEY'))}")


def start_dev_server():
    """Start the development server."""
    try:
        from quill.core.config import get_settings_instance

        settings = get_settings_instance()

        cmd = [
            sys.executable,
            "-m",
            "uvicorn",
            "quill.main:create_app",
            "--factory",
            "--app-dir",
            str(src_path),
            "--reload",
            "--host",
            settings.api_host,
            "--port",
            str(settings.api_port),
            "--log-level",
            "debug",
        ]

        print("Starting Quill development server...")
        print(f"Bridge available at: http://{settings.api_host}:{settings.api_port}")
        print("Press Ctrl+C to stop the server")

        subprocess.run(cmd, cwd=repo_root, check=False)

    except KeyboardInterrupt:
        print("\nShutting down development server...")
    except Exception as e:
        print(f"Error starting development server: {e}")
        sys.exit(1)


def main():
    """Main function."""
    setup_dev_environment()
    start_dev_server()


if __name__ == "__main__":
    main()

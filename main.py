"""
main.py: Server launcher.

    python main.py

Starts the queue API with uvicorn on API_HOST/API_PORT. The Streamlit
dashboard runs separately:

    streamlit run dashboard/app.py
"""

from __future__ import annotations

import uvicorn

from backend.utils.config import get_settings


def main() -> None:
    """Start the queue API server."""
    settings = get_settings()
    uvicorn.run(
        "app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

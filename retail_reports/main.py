"""
FastAPI Production Application

Main entry point for the Retail Reports API.
"""

from retail_reports.serving.api import create_api_app

app = create_api_app()


if __name__ == "__main__":
    import uvicorn
    from retail_reports.config import get_settings

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

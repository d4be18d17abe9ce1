"""Entry point for the KrishiRakshak API service.

This thin wrapper exposes the FastAPI `app` from api/main.py
as `app` at the repository root so that a start command like
`uvicorn main:app` works regardless of the working directory.
Running `python main.py` serves it on $PORT.
"""

from api.main import app, settings  # re-export for uvicorn

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)

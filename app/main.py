"""Repo-root Uvicorn entrypoint.

Run the admissions API from the repo root:

    uvicorn app.main:app --reload

This re-exports the FastAPI app defined in `backend/admissions/main.py`.
"""

from backend.admissions.main import app  # re-export

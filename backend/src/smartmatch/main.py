"""SmartMatch FastAPI application assembly.

Wires the SmartMatch router and CORS middleware.
Run: uvicorn smartmatch.main:app --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smartmatch.router import smartmatch_router


app = FastAPI(title="SmartMatch", version="0.1.0")

# CORS for frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],  # Vite dev server
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(smartmatch_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}

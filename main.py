"""
Skin Consult API Server Entry Point v1.0
Band reconciliation, routine recommendation and weekly scheduling.

Use this file for deployment:
  uvicorn main:app --host 0.0.0.0 --port $PORT
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.consult.router import router as consult_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ============================================
# App Configuration
# ============================================
app = FastAPI(
    title="Skin Consult API",
    description="Machine scan + consultation form -> personalised skincare routine",
    version="1.0.0",
)

# ============================================
# CORS Configuration
# ============================================
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(consult_router)


@app.get("/")
def root():
    return {"service": "skin-consult", "status": "ok", "docs": "/docs"}


# For local development
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)

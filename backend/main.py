from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import os
from dotenv import load_dotenv
import base64
import binascii
import io
from typing import Optional, List

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel
import logging

from glyph_board import (
    DrawingSurface,
    ModelUnavailable,
    PipelineError,
    RecognitionPipeline,
    load_settings,
)
from glyph_board.classifier import CharacterClassifier

# Load environment variables from .env.config next to this file, then the default .env
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
config_path = os.path.join(BASE_DIR, ".env.config")
load_dotenv(dotenv_path=config_path)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Glyph Board API",
    version="1.0.0",
    docs_url="/docs" if os.getenv("ENVIRONMENT") != "production" else None,
    redoc_url="/redoc" if os.getenv("ENVIRONMENT") != "production" else None,
)

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Global variables
settings = load_settings()
classifier: Optional[CharacterClassifier] = None


class AnnotateRequest(BaseModel):
    image: str  # Base64 encoded canvas PNG, optionally a data: URL


class BoxModel(BaseModel):
    x: int
    y: int
    width: int
    height: int


class PredictionModel(BaseModel):
    label: str
    confidence: float
    box: BoxModel


class WarningModel(BaseModel):
    kind: str
    message: str
    box: Optional[BoxModel] = None


class AnnotateResponse(BaseModel):
    success: bool
    status: str
    predictions: List[PredictionModel]
    warnings: List[WarningModel]
    image: str  # Base64 encoded annotated PNG


def _box(box) -> Optional[BoxModel]:
    if box is None:
        return None
    return BoxModel(x=box.x, y=box.y, width=box.width, height=box.height)


def decode_image(data: str) -> Image.Image:
    """Decode a base64 (or data: URL) payload into a PIL image."""
    if "," in data:
        data = data.split(",", 1)[1]
    try:
        image_bytes = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Image is not valid base64")
    if len(image_bytes) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Image too large")
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError):
        raise HTTPException(status_code=400, detail="Could not decode image")
    return image


def load_classifier() -> CharacterClassifier:
    """
    Load a fresh classifier and install it as the global one.

    A failed load only replaces the global when no working model is in
    place, so a bad reload never takes a healthy service down.
    """
    global classifier
    candidate = CharacterClassifier(model_dir=settings.model_dir, device=settings.device)
    if candidate.load():
        logger.info("Glyph classifier loaded successfully")
        classifier = candidate
    elif classifier is not None and classifier.loaded:
        logger.warning(f"Reload failed, keeping the current model: {candidate.load_error}")
    else:
        logger.warning(f"Glyph classifier unavailable: {candidate.load_error}")
        classifier = candidate
    return candidate


@app.on_event("startup")
async def startup_event():
    load_classifier()


@app.get("/")
async def root():
    return {"message": "Glyph Board API is running"}


@app.get("/health")
async def health_check():
    """Health check endpoint with model status"""
    loaded = classifier is not None and classifier.loaded
    return {
        "status": "healthy" if loaded else "degraded",
        "model_loaded": loaded,
        "model_error": None if loaded or classifier is None else classifier.load_error,
        "idle_delay_ms": settings.idle_delay_ms,
        "min_extent": settings.min_extent,
    }


@app.post("/reload-model")
async def reload_model():
    """Retry loading the model artifact after a failed startup."""
    rec = load_classifier()
    if not rec.loaded:
        raise HTTPException(status_code=503, detail=f"Model not loaded: {rec.load_error}")
    return {"model_loaded": True}


@app.post("/annotate", response_model=AnnotateResponse)
async def annotate(request: AnnotateRequest):
    """Segment, classify and annotate a canvas image in one pass."""
    if classifier is None or not classifier.loaded:
        detail = classifier.load_error if classifier is not None else "not initialized"
        raise HTTPException(status_code=503, detail=f"Model not available: {detail}")

    image = decode_image(request.image)
    logger.info(f"Received image: mode={image.mode}, size={image.size}")

    surface = DrawingSurface(width=image.width, height=image.height,
                             stroke_width=settings.stroke_width, font_path=settings.font_path)
    surface.load_image(image)
    pipeline = RecognitionPipeline(surface, classifier, settings=settings)
    run = await pipeline.run()

    if isinstance(run.error, ModelUnavailable):
        raise HTTPException(status_code=503, detail=str(run.error))
    if isinstance(run.error, PipelineError):
        raise HTTPException(status_code=500, detail=f"Annotation failed: {run.error}")
    if run.error is not None:
        raise HTTPException(status_code=422, detail=f"Segmentation failed: {run.error}")

    logger.info(f"Annotated image: {run.summary()}")
    return AnnotateResponse(
        success=True,
        status=run.summary(),
        predictions=[
            PredictionModel(label=p.label, confidence=p.confidence, box=_box(p.box))
            for p in run.predictions
        ],
        warnings=[
            WarningModel(kind=type(w).__name__, message=str(w), box=_box(w.box))
            for w in run.warnings
        ],
        image=base64.b64encode(surface.to_png()).decode("ascii"),
    )


if __name__ == "__main__":
    import socket
    import sys

    # Find available port starting from 8000
    def find_available_port(start_port=8000):
        for port in range(start_port, start_port + 10):
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.bind(('localhost', port))
                    s.close()
                    return port
            except OSError:
                continue
        return None

    available_port = find_available_port()
    if available_port:
        print(f"Starting server on port {available_port}")
        print(f"API docs at: http://localhost:{available_port}/docs")
        uvicorn.run(app, host="0.0.0.0", port=available_port)
    else:
        print("No available ports found in range 8000-8010")
        sys.exit(1)

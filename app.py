from fastapi import Depends, FastAPI, File, UploadFile
from fastapi.responses import JSONResponse, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from typing import Optional
from dotenv import load_dotenv


# Load environment variables
load_dotenv()

from optimizer.constants import (
    ALLOWED_VARIANT_COUNTS,
    BACKGROUND_COLORS,
    BORDER_COLORS,
    BORDER_THICKNESS_PERCENT,
    CANVAS_SIZE,
    DEFAULT_VARIANT_COUNT,
    MAX_FILE_SIZE_KB,
    MAX_UPLOAD_MB,
    PRODUCT_SCALE,
)
from optimizer.env_config import get_config_summary, get_env, get_int_env, startup_validation
from optimizer.errors import (
    CollaboratorUnavailable,
    ExtractionFailed,
    GenerationInProgress,
    NoSourceImage,
    StaleGenerationError,
    SurfaceAcquisitionFailed,
)
from optimizer.exporter import build_variants_zip
from optimizer.gemini_client import check_api_configuration
from optimizer.image_processing import detect_image_type
from optimizer.session import StudioSession

PIPELINE_VERSION = "1.0.0-gemini"

app = FastAPI(title="Catalog Variant Studio")

# Local single-user studio: one in-memory session for the running process
studio_session = StudioSession()


def get_session() -> StudioSession:
    return studio_session


@app.on_event("startup")
async def startup_event():
    """Validate configuration on startup."""
    startup_validation()


# ============================================================================
# HEALTH & CONFIG
# ============================================================================

@app.get("/api/health", response_class=JSONResponse)
async def health():
    """Basic health check."""
    return JSONResponse({
        "status": "ok",
        "service": "catalog-variant-studio",
        "version": PIPELINE_VERSION
    })


@app.get("/api/config", response_class=JSONResponse)
async def get_studio_config():
    """Palettes, allowed variant counts and canvas constants for the client."""
    gemini = check_api_configuration()
    return JSONResponse({
        "background_colors": BACKGROUND_COLORS,
        "border_colors": BORDER_COLORS,
        "allowed_variant_counts": list(ALLOWED_VARIANT_COUNTS),
        "default_variant_count": DEFAULT_VARIANT_COUNT,
        "canvas_size": CANVAS_SIZE,
        "product_scale": PRODUCT_SCALE,
        "border_thickness_percent": BORDER_THICKNESS_PERCENT,
        "max_file_size_kb": MAX_FILE_SIZE_KB,
        "max_upload_mb": MAX_UPLOAD_MB,
        "background_removal_configured": gemini["api_configured"],
    })


@app.get("/api/config-check", response_class=JSONResponse)
async def config_check():
    """Non-secret configuration summary for debugging."""
    return JSONResponse(get_config_summary())


@app.get("/api/status", response_class=JSONResponse)
async def session_status(session: StudioSession = Depends(get_session)):
    return JSONResponse(session.status())


# ============================================================================
# UPLOAD
# ============================================================================

@app.post("/upload", response_class=JSONResponse)
async def upload_file(
    photo: Optional[UploadFile] = File(None),
    session: StudioSession = Depends(get_session)
):
    """
    Load a new source photo. Replaces any previous photo, its cut-out and
    its variants. No file selected is a no-op.
    """
    content = await photo.read() if photo is not None else b""

    if len(content) == 0:
        return JSONResponse({
            "success": True,
            "loaded": False,
            "message": "No file selected",
            "epoch": session.epoch
        })

    max_bytes = MAX_UPLOAD_MB * 1024 * 1024
    if len(content) > max_bytes:
        return JSONResponse({
            "success": False,
            "error": f"File too large, maximum {MAX_UPLOAD_MB}MB"
        }, status_code=413)

    detected_type = detect_image_type(content)
    if not detected_type:
        return JSONResponse({
            "success": False,
            "error": "Unsupported file format, upload a PNG, JPG or WebP image"
        }, status_code=400)

    try:
        session.load_source(content)
    except ValueError as e:
        return JSONResponse({
            "success": False,
            "error": f"Could not read image: {e}"
        }, status_code=400)

    width, height = session.source_size
    print(f"✅ [UPLOAD] {photo.filename}: {len(content)} bytes, {detected_type}, {width}x{height}")

    return JSONResponse({
        "success": True,
        "loaded": True,
        "epoch": session.epoch,
        "width": width,
        "height": height,
        "content_type": detected_type
    })


# ============================================================================
# GENERATION
# ============================================================================

class GenerateRequest(BaseModel):
    count: int = DEFAULT_VARIANT_COUNT


def _error_response(message: str, status_code: int, error_code: str) -> JSONResponse:
    return JSONResponse({
        "success": False,
        "error": message,
        "error_code": error_code
    }, status_code=status_code)


@app.post("/generate", response_class=JSONResponse)
async def generate(request: GenerateRequest, session: StudioSession = Depends(get_session)):
    """
    Remove the background (first run per photo only), then compose and
    encode `count` variants. All-or-nothing: any failure returns one error.
    """
    if request.count not in ALLOWED_VARIANT_COUNTS:
        return _error_response(
            f"Variant count must be one of {list(ALLOWED_VARIANT_COUNTS)}", 400, "INVALID_COUNT"
        )

    print(f"🔵 [PIPELINE_START] {request.count} variant(s), epoch {session.epoch}")

    try:
        run = await run_in_threadpool(session.generate, request.count)
    except NoSourceImage as e:
        return _error_response(str(e), 400, "NO_SOURCE")
    except GenerationInProgress as e:
        return _error_response(str(e), 409, "BUSY")
    except StaleGenerationError as e:
        return _error_response(str(e), 409, "STALE")
    except CollaboratorUnavailable as e:
        return _error_response(f"Background removal unavailable: {e}", 502, "COLLABORATOR_UNAVAILABLE")
    except ExtractionFailed as e:
        return _error_response(str(e), 422, "EXTRACTION_FAILED")
    except SurfaceAcquisitionFailed as e:
        return _error_response(f"Could not allocate drawing surface: {e}", 500, "SURFACE_FAILED")
    except ValueError as e:
        return _error_response(str(e), 400, "INVALID_INPUT")
    except Exception as e:
        print(f"❌ [PIPELINE] Unexpected failure: {e}")
        return _error_response(str(e) or "Something went wrong during generation.", 500, "INTERNAL")

    print(f"🔵 [FINAL_STATUS] {len(run.variants)} variant(s) in {run.elapsed_ms:.0f}ms")

    return JSONResponse({
        "success": True,
        "run": run.to_dict()
    })


# ============================================================================
# OUTPUT
# ============================================================================

@app.get("/api/cutout")
async def get_cutout(session: StudioSession = Depends(get_session)):
    """Cut-out product (transparent PNG) of the current photo."""
    cutout = session.cutout_png
    if cutout is None:
        return JSONResponse({"success": False, "error": "No cut-out yet"}, status_code=404)
    return Response(content=cutout, media_type="image/png")


@app.get("/api/variants/{variant_id}")
async def get_variant(variant_id: str, session: StudioSession = Depends(get_session)):
    variant = session.find_variant(variant_id)
    if variant is None:
        return JSONResponse({"success": False, "error": "Variant not found"}, status_code=404)

    return Response(
        content=variant.image_bytes,
        media_type=variant.mime_type,
        headers={"Content-Disposition": f'inline; filename="{variant.filename}"'}
    )


@app.get("/api/download")
async def download_all(session: StudioSession = Depends(get_session)):
    """All current variants as a ZIP, one meesho_variant_<n>.jpg per variant."""
    variants = session.variants
    if not variants:
        return JSONResponse({"success": False, "error": "No variants to download"}, status_code=404)

    archive = build_variants_zip(variants)
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": 'attachment; filename="meesho_variants.zip"'}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=get_env("STUDIO_HOST", default="127.0.0.1"),
        port=get_int_env("STUDIO_PORT", default=8000)
    )

"""
Gemini Background Removal Client

Asks a Gemini image model to isolate the product from a photo and return it
centered on a pure white background. The rest of the pipeline keys that white
to transparency, so the only contract relied on is "same subject, on white".

Environment Variables:
    GEMINI_API_KEY: API key (required; API_KEY is accepted as a fallback)
    GEMINI_BASE_URL: API base URL (optional, defaults to production)
    GEMINI_MODEL: Image model name (optional)
    GEMINI_TIMEOUT_SECONDS: Request deadline (optional, default: none)
    DEBUG_GEMINI: Set to "1" to enable debug output
"""

import base64
import os
import requests
from typing import Optional, Tuple
import time

from .errors import CollaboratorUnavailable, ExtractionFailed
from .image_processing import detect_image_type

# =============================================================================
# Configuration
# =============================================================================

GEMINI_PRODUCTION_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash-image"

EXTRACTION_PROMPT = (
    "Extract the main product from this image and place it on a pure, solid white background (#FFFFFF). "
    "The product must be clean, sharp, and centered. Do not add any extra text or graphics. "
    "Return only the product on white."
)

DEBUG_ENABLED = os.getenv("DEBUG_GEMINI", "0") == "1"


def _get_api_key() -> Optional[str]:
    """Get Gemini API key from environment (strip whitespace/newlines)"""
    key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    if key:
        key = key.strip()
    return key if key else None


def _get_base_url() -> str:
    """Get Gemini API base URL from environment or use production default"""
    return os.getenv("GEMINI_BASE_URL", GEMINI_PRODUCTION_URL).strip().rstrip("/")


def _get_model() -> str:
    return os.getenv("GEMINI_MODEL", DEFAULT_MODEL).strip() or DEFAULT_MODEL


def _get_timeout() -> Optional[float]:
    """Client-side deadline in seconds, None when unset (wait indefinitely)."""
    value = os.getenv("GEMINI_TIMEOUT_SECONDS", "").strip()
    if not value:
        return None
    try:
        timeout = float(value)
    except ValueError:
        return None
    return timeout if timeout > 0 else None


def _build_payload(image_bytes: bytes, mime_type: str) -> dict:
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {
                        "inlineData": {
                            "mimeType": mime_type,
                            "data": base64.b64encode(image_bytes).decode("utf-8"),
                        }
                    },
                    {"text": EXTRACTION_PROMPT},
                ],
            }
        ],
        "generationConfig": {
            "responseModalities": ["IMAGE", "TEXT"],
        },
    }


def extract_inline_image(response_json: dict) -> Optional[Tuple[bytes, str]]:
    """
    Find the first inline image part in a generateContent response.

    Returns:
        (image_bytes, mime_type), or None if the model returned no image
    """
    candidates = response_json.get("candidates") or []
    if not candidates:
        return None

    parts = (candidates[0].get("content") or {}).get("parts") or []
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            try:
                data = base64.b64decode(inline["data"])
            except (ValueError, TypeError):
                return None
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return data, mime_type

    return None


# =============================================================================
# Main API Functions
# =============================================================================

def remove_background_gemini(
    image_bytes: bytes,
    *,
    mime_type: Optional[str] = None,
    timeout: Optional[float] = None
) -> Tuple[bytes, dict]:
    """
    Isolate the product on a white background using Gemini.

    Args:
        image_bytes: Raw image bytes (JPEG/PNG/WebP)
        mime_type: Override the detected MIME type
        timeout: Request timeout in seconds; defaults to GEMINI_TIMEOUT_SECONDS,
                 and to no deadline at all when that is unset

    Returns:
        Tuple of (image_bytes, metadata_dict)

    Raises:
        ValueError: If no image bytes are given
        CollaboratorUnavailable: Missing key, transport failure or HTTP error
        ExtractionFailed: The model answered without an image
    """
    if not image_bytes:
        raise ValueError("Empty image bytes provided")

    api_key = _get_api_key()
    if not api_key:
        raise CollaboratorUnavailable(
            "Gemini API key not configured. "
            "Set GEMINI_API_KEY environment variable."
        )

    mime_type = mime_type or detect_image_type(image_bytes) or "image/png"
    model = _get_model()
    api_url = f"{_get_base_url()}/models/{model}:generateContent"
    if timeout is None:
        timeout = _get_timeout()

    headers = {
        "Content-Type": "application/json",
        "x-goog-api-key": api_key,
    }

    if DEBUG_ENABLED:
        print(f"[Gemini] Sending request to {api_url}")
        print(f"[Gemini] Image: {len(image_bytes)} bytes, {mime_type}, timeout={timeout}")

    start_time = time.time()

    try:
        response = requests.post(
            api_url,
            headers=headers,
            json=_build_payload(image_bytes, mime_type),
            timeout=timeout
        )
    except requests.exceptions.Timeout:
        raise CollaboratorUnavailable(f"Gemini API request timed out after {timeout}s")
    except requests.exceptions.ConnectionError as e:
        raise CollaboratorUnavailable(f"Could not connect to Gemini API: {e}")
    except requests.exceptions.RequestException as e:
        raise CollaboratorUnavailable(f"Gemini API request failed: {e}")

    elapsed = time.time() - start_time

    if response.status_code != 200:
        error_msg = f"Gemini API error: HTTP {response.status_code}"
        try:
            error_detail = response.json().get("error", {}).get("message")
        except ValueError:
            error_detail = None
        error_msg += f" - {error_detail or response.text[:500]}"

        if DEBUG_ENABLED:
            print(f"[Gemini] ERROR: {error_msg}")

        raise CollaboratorUnavailable(error_msg)

    try:
        body = response.json()
    except ValueError:
        raise ExtractionFailed("Failed to extract product from image.")

    extracted = extract_inline_image(body)
    if extracted is None:
        if DEBUG_ENABLED:
            print(f"[Gemini] No image part in response: {str(body)[:300]}")
        raise ExtractionFailed("Failed to extract product from image.")

    result_bytes, result_mime = extracted

    metadata = {
        "success": True,
        "model": model,
        "input_size_bytes": len(image_bytes),
        "input_mime_type": mime_type,
        "output_size_bytes": len(result_bytes),
        "output_mime_type": result_mime,
        "processing_time_ms": round(elapsed * 1000, 1),
        "api_url": api_url,
    }

    if DEBUG_ENABLED:
        print(f"[Gemini] Success! Output: {len(result_bytes)} bytes in {elapsed*1000:.0f}ms")

    return result_bytes, metadata


def check_api_configuration() -> dict:
    """
    Check Gemini API configuration status.

    Returns:
        Dict with configuration status (without exposing full key)
    """
    api_key = _get_api_key()
    base_url = _get_base_url()

    return {
        "api_configured": bool(api_key),
        "api_key_length": len(api_key) if api_key else 0,
        "api_key_prefix": api_key[:6] + "..." if api_key and len(api_key) > 6 else None,
        "base_url": base_url,
        "model": _get_model(),
        "timeout_seconds": _get_timeout(),
    }


# =============================================================================
# Testing
# =============================================================================

if __name__ == "__main__":
    import sys

    print("Gemini Background Removal - Configuration Check")
    print("=" * 50)

    config = check_api_configuration()
    for key, value in config.items():
        print(f"  {key}: {value}")

    if not config["api_configured"]:
        print("\n⚠️  API key not configured!")
        print("   Set GEMINI_API_KEY environment variable")
        sys.exit(1)

    print("\n✅ API configured and ready")

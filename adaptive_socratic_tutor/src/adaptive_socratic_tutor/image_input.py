"""
Image Problem Input

Contract for turning an uploaded image into problem text. The OCR backend
is pluggable (any object with ``process_image(path)``); this module only
validates the file, calls the backend and decides whether the extracted
text is usable or the student has to type the problem instead.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from adaptive_socratic_tutor.problem_parser import ParsedProblem, ProblemParser

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_FORMATS = ("png", "jpg", "jpeg", "gif", "webp")
MAX_IMAGE_FILE_SIZE = 20 * 1024 * 1024  # 20MB
MIN_EXTRACTION_CONFIDENCE = 0.3


@dataclass
class ImageExtraction:
    success: bool
    extracted_text: str = ""
    confidence: float = 0.0
    error: Optional[str] = None


class ImageProcessor(Protocol):
    def process_image(self, path: str) -> ImageExtraction:
        ...


@dataclass
class ImageProblemResolution:
    """Outcome of reading a problem from an image."""
    needs_user_input: bool
    extracted_text: str = ""
    confidence: float = 0.0
    message: str = ""
    parsed: Optional[ParsedProblem] = None
    warnings: List[str] = field(default_factory=list)


def validate_image_file(path: str) -> List[str]:
    """
    Check that an image file exists, is readable and has a supported format.

    Returns:
        List of error messages (empty when the file is acceptable)
    """
    if not os.path.exists(path):
        return ["File does not exist. Please check the file path."]

    errors = []
    size = os.path.getsize(path)
    if size > MAX_IMAGE_FILE_SIZE:
        errors.append(
            f"File size ({size} bytes) exceeds maximum allowed size ({MAX_IMAGE_FILE_SIZE} bytes)."
        )

    extension = os.path.splitext(path)[1].lower().lstrip(".")
    if extension not in SUPPORTED_IMAGE_FORMATS:
        errors.append(f"Unsupported file format: .{extension}")

    if not os.access(path, os.R_OK):
        errors.append("File is not readable. Please check file permissions.")
    return errors


def resolve_image_problem(
    processor: ImageProcessor,
    path: str,
    parser: Optional[ProblemParser] = None,
) -> ImageProblemResolution:
    """
    Extract a problem from an image.

    Low-confidence or failed extraction never raises; it asks the student to
    type the problem instead.

    Args:
        processor: OCR backend
        path: Image file path
        parser: Parser used on the extracted text (default ProblemParser())

    Returns:
        ImageProblemResolution
    """
    errors = validate_image_file(path)
    if errors:
        return ImageProblemResolution(needs_user_input=True, message="; ".join(errors))

    try:
        extraction = processor.process_image(path)
    except Exception as e:
        # Any OCR backend failure means the student types the problem instead
        logger.warning(f"⚠️ [ImageInput] Image processing failed: {e}")
        return ImageProblemResolution(needs_user_input=True, message=f"Image processing failed: {e}")

    if not extraction.success or extraction.confidence < MIN_EXTRACTION_CONFIDENCE:
        reason = extraction.error or "The text in the image could not be read reliably."
        logger.info(f"ℹ️ [ImageInput] Asking for typed problem (confidence={extraction.confidence:.2f})")
        return ImageProblemResolution(
            needs_user_input=True,
            extracted_text=extraction.extracted_text,
            confidence=extraction.confidence,
            message=f"{reason} Please type the problem instead.",
        )

    parsed = (parser or ProblemParser()).parse_problem(extraction.extracted_text)
    if not parsed.is_valid:
        return ImageProblemResolution(
            needs_user_input=True,
            extracted_text=extraction.extracted_text,
            confidence=extraction.confidence,
            message="; ".join(parsed.errors),
            parsed=parsed,
        )

    return ImageProblemResolution(
        needs_user_input=False,
        extracted_text=parsed.content,
        confidence=extraction.confidence,
        parsed=parsed,
        warnings=list(parsed.warnings),
    )

"""
Remote Collaborators for Frame Enhancer

Face classification and image enhancement are delegated to Gemini. The
pipelines only depend on the FrameClassifier / FrameEnhancer protocols, so any
object with the same call shape can stand in for the Gemini implementations.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Protocol, Tuple, runtime_checkable

from google import genai
from google.genai import types

from core.error_handling import ErrorHandler, RemoteServiceError
from core.models import GenderFilter, GeneratedImage

if TYPE_CHECKING:
    from core.config import Config
    from core.logger import AppLogger


FACE_PRESENCE_PROMPT = (
    "Analyze the image and determine if it contains a prominent human face. "
    "Respond with only one word: 'Yes' or 'No'."
)
GENDER_PROMPT = (
    "Analyze the image and determine if it contains a prominent human face. If it does, identify the gender. "
    "Respond with only one word: 'Male', 'Female', or 'None'."
)

COLORIZE_INSTRUCTION = (
    "If the image is black and white or has faded colors, colorize it realistically with natural skin tones. "
    "If it already has good color, make the existing colors richer and more lifelike."
)
KEEP_COLORS_INSTRUCTION = "Do not change the colors of the image."

ENHANCE_PROMPT = """You are an expert photo restoration AI. Restore this frame so it looks like a recent photograph taken with a modern high-resolution camera.

Rules:
1. Preserve the person's identity, facial structure and natural features exactly. Restore, do not beautify or alter.
2. Sharpen blurry areas, remove noise and compression artifacts, restore fine detail and upscale to a high resolution.
3. Restore natural skin texture, hair strands and eye detail without a plastic look. Balance the lighting.
4. Color: {color}
5. Return only the enhanced image: no composites, text, watermarks or logos."""

ENHANCE_WITH_REFERENCE_PROMPT = """You are an expert photo restoration AI. You receive two images: first the low-quality frame to restore, then a reference frame of the same person.

Rules:
1. The person's identity in the result must match the reference frame exactly. Treat the reference as ground truth for facial structure and features.
2. Restore only the first image: sharpen blurry areas, remove noise and compression artifacts, restore fine detail and upscale to a high resolution.
3. Restore natural skin texture, hair strands and eye detail without a plastic look. Balance the lighting.
4. Color: {color}
5. Return only the restored first image, not a merge of the two. No text, watermarks or logos."""


@runtime_checkable
class FrameClassifier(Protocol):
    def classify(self, image: bytes, requested: GenderFilter) -> str:
        """Returns 'Yes'/'No' for GenderFilter.ALL, otherwise 'Male'/'Female'/'None'."""
        ...


@runtime_checkable
class FrameEnhancer(Protocol):
    def enhance(self, image: bytes, reference: Optional[bytes], colorize: bool) -> Optional[GeneratedImage]:
        """Returns the enhanced image, or None when the service produced no image."""
        ...


class GeminiClient:
    """Thin wrapper around ``google.genai.Client`` that retries failed calls."""

    def __init__(self, config: "Config", logger: "AppLogger", client: Optional[Any] = None):
        self.config = config
        self.logger = logger
        if client is None:
            if not config.gemini_api_key:
                raise RemoteServiceError("GEMINI_API_KEY is not set.")
            http_options = None
            if config.remote_timeout_seconds:
                http_options = types.HttpOptions(timeout=int(config.remote_timeout_seconds * 1000))
            client = genai.Client(api_key=config.gemini_api_key, http_options=http_options)
        self.client = client
        self.error_handler = ErrorHandler(logger, config.retry_max_attempts, config.retry_backoff_seconds)
        self.generate = self.error_handler.with_retry()(self._generate)

    def _generate(self, model: str, contents: List[Any], generation_config: Optional[types.GenerateContentConfig] = None):
        return self.client.models.generate_content(model=model, contents=contents, config=generation_config)


def _image_part(image: bytes, mime_type: str = "image/jpeg") -> types.Part:
    return types.Part.from_bytes(data=image, mime_type=mime_type)


def _first_word(text: Optional[str]) -> str:
    words = (text or "").strip().split()
    return words[0].strip(".,!'\"") if words else ""


class GeminiFrameClassifier:
    def __init__(self, client: GeminiClient, model: str):
        self.client = client
        self.model = model

    def classify(self, image: bytes, requested: GenderFilter) -> str:
        prompt = FACE_PRESENCE_PROMPT if requested == GenderFilter.ALL else GENDER_PROMPT
        response = self.client.generate(self.model, [_image_part(image), prompt])
        answer = _first_word(getattr(response, "text", None))
        if not answer:
            raise RemoteServiceError("Classifier returned an empty response.")
        return answer


class GeminiFrameEnhancer:
    def __init__(self, client: GeminiClient, model: str):
        self.client = client
        self.model = model

    @staticmethod
    def build_prompt(has_reference: bool, colorize: bool) -> str:
        color = COLORIZE_INSTRUCTION if colorize else KEEP_COLORS_INSTRUCTION
        template = ENHANCE_WITH_REFERENCE_PROMPT if has_reference else ENHANCE_PROMPT
        return template.format(color=color)

    def enhance(self, image: bytes, reference: Optional[bytes], colorize: bool) -> Optional[GeneratedImage]:
        contents: List[Any] = [self.build_prompt(reference is not None, colorize), _image_part(image)]
        if reference is not None:
            contents.append(_image_part(reference))
        response = self.client.generate(
            self.model,
            contents,
            types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
        )
        candidates = getattr(response, "candidates", None) or []
        if not candidates or candidates[0].content is None:
            return None
        for part in candidates[0].content.parts or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                return GeneratedImage(data=inline.data, mime_type=inline.mime_type or "image/png")
        return None


def build_gemini_services(config: "Config", logger: "AppLogger") -> Tuple[GeminiFrameClassifier, GeminiFrameEnhancer]:
    """Creates the classifier and enhancer sharing one Gemini client."""
    client = GeminiClient(config, logger)
    return (
        GeminiFrameClassifier(client, config.classifier_model),
        GeminiFrameEnhancer(client, config.enhancer_model),
    )

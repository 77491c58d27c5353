import io
from typing import List, Optional, Tuple

from PIL import Image, UnidentifiedImageError, features

from nameplate.core.exceptions import PreprocessingFailure
from nameplate.core.logging import LoggerRegistry
from nameplate.domain.models import CapturedImage, PreparedImage, PreprocessOptions

logger = LoggerRegistry.get_service_logger("image_preprocessor")

_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/webp": "WEBP",
}


def load_captured_image(data: bytes, mime_type: Optional[str] = None, file_name: Optional[str] = None) -> CapturedImage:
    """
    Builds a CapturedImage from uploaded bytes, reading the pixel size from the header.
    The MIME type sniffed from the bytes wins over the declared one.

    Raises:
        PreprocessingFailure: if the bytes are not an image Pillow can identify.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            detected = Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise PreprocessingFailure(f"Upload is not a readable image: {exc}", size=len(data)) from exc

    # Pillow only warns between MAX_IMAGE_PIXELS and twice that
    if Image.MAX_IMAGE_PIXELS and width * height > Image.MAX_IMAGE_PIXELS:
        raise PreprocessingFailure(
            f"Image is {width}x{height} pixels; the limit is {Image.MAX_IMAGE_PIXELS}.",
            size=len(data),
        )

    return CapturedImage(
        data=data,
        mime_type=detected or mime_type or "application/octet-stream",
        size=len(data),
        width=width,
        height=height,
        file_name=file_name,
    )


class ImagePreprocessor:
    """
    Brings captured photos within the recognition service's upload budget.

    The encode ladder is bounded: initial quality, minimum quality, a raster
    shrink at minimum quality and, when enabled, an alternate format. A step
    only replaces the current result when it is not larger, so the byte size
    never grows along the ladder.
    """

    def __init__(self, options: Optional[PreprocessOptions] = None):
        self.options = options or PreprocessOptions()

    def prepare(self, image: CapturedImage, options: Optional[PreprocessOptions] = None) -> PreparedImage:
        opts = options or self.options
        log = logger.bind(
            original_size=image.size,
            original_dimensions=(image.width, image.height),
            max_bytes=opts.max_bytes,
            max_side=opts.max_side,
        )

        if image.size <= opts.max_bytes and max(image.width, image.height) <= opts.max_side:
            log.info("preprocess.passthrough")
            return PreparedImage(
                data=image.data,
                mime_type=image.mime_type,
                size=image.size,
                width=image.width,
                height=image.height,
                reencoded=False,
                file_name=image.file_name,
            )

        raster = self._decode(image)
        raster = self._fit_within(raster, opts.max_side)

        steps: List[str] = []
        best = self._encode(raster, opts.mime, opts.initial_quality)
        steps.append("initial_quality")

        if len(best[0]) > opts.max_bytes:
            best = self._smaller(best, self._encode(raster, opts.mime, opts.min_quality))
            steps.append("min_quality")

        if len(best[0]) > opts.max_bytes:
            shrunk = raster.resize(
                (max(1, round(raster.width * opts.shrink_factor)), max(1, round(raster.height * opts.shrink_factor))),
                Image.Resampling.LANCZOS,
            )
            best = self._smaller(best, self._encode(shrunk, opts.mime, opts.min_quality))
            steps.append("shrink")
            raster = shrunk

        if len(best[0]) > opts.max_bytes and opts.allow_webp and features.check("webp"):
            best = self._smaller(best, self._encode(raster, "image/webp", opts.min_quality))
            steps.append("alternate_format")

        data, mime_type, (width, height) = best
        log = log.bind(final_size=len(data), final_dimensions=(width, height), steps=steps)

        if len(data) > opts.max_bytes:
            log.warning("preprocess.over_budget")
            raise PreprocessingFailure(
                f"Image is {len(data)} bytes after preprocessing; the limit is {opts.max_bytes}.",
                size=len(data),
                max_bytes=opts.max_bytes,
            )

        log.info("preprocess.finished")
        return PreparedImage(
            data=data,
            mime_type=mime_type,
            size=len(data),
            width=width,
            height=height,
            reencoded=True,
            steps=steps,
            file_name=self._encoded_name(image.file_name, mime_type),
        )

    @staticmethod
    def _decode(image: CapturedImage) -> Image.Image:
        try:
            with Image.open(io.BytesIO(image.data)) as img:
                img.load()
                if img.mode not in ("RGB", "L"):
                    return img.convert("RGB")
                return img.copy()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            raise PreprocessingFailure(f"Could not decode captured image: {exc}", size=image.size) from exc

    @staticmethod
    def _fit_within(raster: Image.Image, max_side: int) -> Image.Image:
        largest = max(raster.width, raster.height)
        if largest <= max_side:
            return raster
        scale = max_side / largest
        size = (max(1, round(raster.width * scale)), max(1, round(raster.height * scale)))
        return raster.resize(size, Image.Resampling.LANCZOS)

    @staticmethod
    def _encode(raster: Image.Image, mime: str, quality: int) -> Tuple[bytes, str, Tuple[int, int]]:
        fmt = _PIL_FORMATS.get(mime)
        if fmt is None:
            raise PreprocessingFailure(f"Unsupported output type for preprocessing: {mime}")
        buffer = io.BytesIO()
        raster.save(buffer, format=fmt, quality=quality)
        return buffer.getvalue(), mime, raster.size

    @staticmethod
    def _smaller(current, candidate):
        return candidate if len(candidate[0]) <= len(current[0]) else current

    @staticmethod
    def _encoded_name(file_name: Optional[str], mime_type: str) -> str:
        stem = (file_name or "scan").rsplit(".", 1)[0]
        ext = ".webp" if mime_type == "image/webp" else ".jpg"
        return f"{stem}.compressed{ext}"

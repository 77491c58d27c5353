import httpx
import pytest
from pytest_httpx import HTTPXMock

from nameplate.domain.models import PreparedImage, RecognitionOptions
from nameplate.infrastructure.ocr_client import OcrSpaceClient

ENDPOINT = "https://ocr.test/parse/image"


@pytest.fixture
def ocr_client() -> OcrSpaceClient:
    return OcrSpaceClient(endpoint=ENDPOINT, api_key="test-key", timeout=5.0)


@pytest.fixture
def image() -> PreparedImage:
    return PreparedImage(
        data=b"\xff\xd8jpeg",
        mime_type="image/jpeg",
        size=6,
        width=10,
        height=10,
        file_name="label.compressed.jpg",
    )


async def test_parse_image_success(ocr_client: OcrSpaceClient, image: PreparedImage, httpx_mock: HTTPXMock):
    """The request carries the key header and the recognition options."""
    body = {"IsErroredOnProcessing": False, "ParsedResults": [{"ParsedText": "DEYE"}]}
    httpx_mock.add_response(url=ENDPOINT, method="POST", json=body)

    result = await ocr_client.parse_image(image, "2", RecognitionOptions(language="eng", is_table=True))

    assert result == body
    request = httpx_mock.get_request()
    assert request.headers["apikey"] == "test-key"
    content = request.read()
    assert b'name="OCREngine"\r\n\r\n2' in content
    assert b'name="isTable"\r\n\r\ntrue' in content
    assert b'name="language"\r\n\r\neng' in content
    assert b'filename="label.compressed.jpg"' in content


async def test_parse_image_server_error(ocr_client: OcrSpaceClient, image: PreparedImage, httpx_mock: HTTPXMock):
    httpx_mock.add_response(url=ENDPOINT, method="POST", status_code=503)

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        await ocr_client.parse_image(image, "3", RecognitionOptions())

    assert excinfo.value.response.status_code == 503


async def test_parse_image_invalid_json(ocr_client: OcrSpaceClient, image: PreparedImage, httpx_mock: HTTPXMock):
    httpx_mock.add_response(url=ENDPOINT, method="POST", text="<html>maintenance</html>")

    with pytest.raises(ValueError):
        await ocr_client.parse_image(image, "3", RecognitionOptions())


async def test_parse_image_transport_error(ocr_client: OcrSpaceClient, image: PreparedImage, httpx_mock: HTTPXMock):
    httpx_mock.add_exception(httpx.ConnectError("connection refused"))

    with pytest.raises(httpx.TransportError):
        await ocr_client.parse_image(image, "3", RecognitionOptions())

import pytest

from eventhub.qr import render_qr_png

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def test_renders_png():
    png = render_qr_png("TKT-AB12CD34-1-XYZ23456")
    assert png.startswith(PNG_MAGIC)


def test_empty_payload_rejected():
    with pytest.raises(ValueError):
        render_qr_png("")


def test_payload_round_trips_through_a_decoder():
    cv2 = pytest.importorskip("cv2")
    np = pytest.importorskip("numpy")

    number = "TKT-AB12CD34-3-QWERTY78"
    image = cv2.imdecode(np.frombuffer(render_qr_png(number), dtype=np.uint8), cv2.IMREAD_GRAYSCALE)
    decoded, _, _ = cv2.QRCodeDetector().detectAndDecode(image)
    assert decoded == number

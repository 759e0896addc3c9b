import numpy as np
import pytest

from alpaca_conform.protocol.image_bytes import (
    HEADER_V1_SIZE,
    ImageBytesMetadata,
    ImageElementType,
    decode_frame,
    decode_metadata,
    encode_frame,
    metadata_version,
)


def test_error_frame_round_trips_envelope_and_message():
    metadata = ImageBytesMetadata(error_number=0x401, client_transaction_id=67890, server_transaction_id=12)
    frame = encode_frame(metadata, error_message="Exposure was not started")

    decoded = decode_frame(frame)

    assert decoded.metadata.metadata_version == 1
    assert decoded.metadata.error_number == 0x401
    assert decoded.metadata.client_transaction_id == 67890
    assert decoded.metadata.server_transaction_id == 12
    assert decoded.metadata.data_start == HEADER_V1_SIZE
    assert decoded.error_message == "Exposure was not started"
    assert decoded.image is None


def test_image_frame_decodes_to_numpy_array():
    image = np.arange(12, dtype=np.int32).reshape(3, 4)
    frame = encode_frame(ImageBytesMetadata(client_transaction_id=1, server_transaction_id=2), image=image)

    decoded = decode_frame(frame)

    assert decoded.metadata.rank == 2
    assert decoded.metadata.transmission_element_type == ImageElementType.INT32
    assert decoded.metadata.dimensions == (3, 4)
    np.testing.assert_array_equal(decoded.image, image)


def test_image_is_widened_to_the_declared_element_type():
    image = np.array([[1, 2], [3, 4]], dtype=np.uint16)
    metadata = ImageBytesMetadata(image_element_type=ImageElementType.INT32)
    decoded = decode_frame(encode_frame(metadata, image=image))

    assert decoded.metadata.transmission_element_type == ImageElementType.UINT16
    assert decoded.image.dtype == np.dtype("<i4")
    assert decoded.image.tolist() == [[1, 2], [3, 4]]


def test_short_frames_are_rejected():
    with pytest.raises(ValueError):
        metadata_version(b"\x01\x00")
    with pytest.raises(ValueError):
        decode_metadata(b"\x01\x00\x00\x00" * 3)

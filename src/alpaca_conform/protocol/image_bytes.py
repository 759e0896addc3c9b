from __future__ import annotations

import math
import struct
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Optional

import numpy as np

IMAGE_BYTES_MIME_TYPE = "application/imagebytes"
BASE64_HANDOFF_HEADER = "base64handoff"

# MetadataVersion, ErrorNumber, ClientTransactionID, ServerTransactionID, DataStart,
# ImageElementType, TransmissionElementType, Rank, Dimension1, Dimension2, Dimension3
_HEADER_V1 = struct.Struct("<iiIIiiiiiii")
_VERSION = struct.Struct("<i")
HEADER_V1_SIZE = _HEADER_V1.size


class ImageElementType(IntEnum):
    UNKNOWN = 0
    INT16 = 1
    INT32 = 2
    DOUBLE = 3
    SINGLE = 4
    UINT64 = 5
    BYTE = 6
    INT64 = 7
    UINT16 = 8
    UINT32 = 9


_NUMPY_DTYPES = {
    ImageElementType.INT16: np.dtype("<i2"),
    ImageElementType.INT32: np.dtype("<i4"),
    ImageElementType.DOUBLE: np.dtype("<f8"),
    ImageElementType.SINGLE: np.dtype("<f4"),
    ImageElementType.UINT64: np.dtype("<u8"),
    ImageElementType.BYTE: np.dtype("u1"),
    ImageElementType.INT64: np.dtype("<i8"),
    ImageElementType.UINT16: np.dtype("<u2"),
    ImageElementType.UINT32: np.dtype("<u4"),
}


@dataclass(frozen=True)
class ImageBytesMetadata:
    metadata_version: int = 1
    error_number: int = 0
    client_transaction_id: int = 0
    server_transaction_id: int = 0
    data_start: int = HEADER_V1_SIZE
    image_element_type: int = ImageElementType.UNKNOWN
    transmission_element_type: int = ImageElementType.UNKNOWN
    rank: int = 0
    dimension1: int = 0
    dimension2: int = 0
    dimension3: int = 0

    @property
    def dimensions(self) -> tuple[int, ...]:
        return (self.dimension1, self.dimension2, self.dimension3)[: self.rank]


@dataclass(frozen=True)
class ImageBytesFrame:
    metadata: ImageBytesMetadata
    error_message: str = ""
    image: Optional[np.ndarray] = None


def metadata_version(frame: bytes) -> int:
    if len(frame) < _VERSION.size:
        raise ValueError(f"ImageBytes frame is too short to hold a metadata version: {len(frame)} bytes")
    return _VERSION.unpack_from(frame, 0)[0]


def decode_metadata(frame: bytes) -> ImageBytesMetadata:
    """Read the version 1 header regardless of the version number the frame declares."""
    if len(frame) < HEADER_V1_SIZE:
        raise ValueError(f"ImageBytes frame is shorter than the {HEADER_V1_SIZE} byte header: {len(frame)} bytes")
    return ImageBytesMetadata(*_HEADER_V1.unpack_from(frame, 0))


def decode_error_message(frame: bytes, metadata: ImageBytesMetadata) -> str:
    start = max(metadata.data_start, HEADER_V1_SIZE)
    return frame[start:].decode("utf-8", errors="replace")


def decode_image(frame: bytes, metadata: ImageBytesMetadata) -> np.ndarray:
    try:
        transmission = _NUMPY_DTYPES[ImageElementType(metadata.transmission_element_type)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unsupported transmission element type: {metadata.transmission_element_type}") from exc

    shape = metadata.dimensions
    pixels = np.frombuffer(frame, dtype=transmission, count=math.prod(shape), offset=metadata.data_start).reshape(shape)

    try:
        element = _NUMPY_DTYPES.get(ImageElementType(metadata.image_element_type))
    except ValueError:
        element = None
    if element is not None and element != transmission:
        return pixels.astype(element)
    return pixels


def decode_frame(frame: bytes) -> ImageBytesFrame:
    metadata = decode_metadata(frame)
    if metadata.error_number != 0:
        return ImageBytesFrame(metadata=metadata, error_message=decode_error_message(frame, metadata))
    if metadata.rank == 0:
        return ImageBytesFrame(metadata=metadata)
    return ImageBytesFrame(metadata=metadata, image=decode_image(frame, metadata))


def _element_type_for(dtype: np.dtype) -> ImageElementType:
    little_endian = dtype.newbyteorder("<")
    for element_type, candidate in _NUMPY_DTYPES.items():
        if candidate == little_endian:
            return element_type
    raise ValueError(f"No ImageBytes element type for numpy dtype {dtype}")


def encode_frame(
    metadata: ImageBytesMetadata,
    *,
    error_message: str = "",
    image: Optional[np.ndarray] = None,
) -> bytes:
    """Build an ImageBytes frame; the payload is the error text when error_number is set."""
    metadata = replace(metadata, data_start=HEADER_V1_SIZE)
    if metadata.error_number != 0:
        payload = error_message.encode("utf-8")
    elif image is not None:
        transmission = _element_type_for(image.dtype)
        dims = tuple(image.shape) + (0,) * (3 - image.ndim)
        metadata = replace(
            metadata,
            transmission_element_type=transmission,
            image_element_type=metadata.image_element_type or transmission,
            rank=image.ndim,
            dimension1=dims[0],
            dimension2=dims[1],
            dimension3=dims[2],
        )
        payload = np.ascontiguousarray(image, dtype=_NUMPY_DTYPES[transmission]).tobytes()
    else:
        payload = b""

    header = _HEADER_V1.pack(
        metadata.metadata_version,
        metadata.error_number,
        metadata.client_transaction_id,
        metadata.server_transaction_id,
        metadata.data_start,
        int(metadata.image_element_type),
        int(metadata.transmission_element_type),
        metadata.rank,
        metadata.dimension1,
        metadata.dimension2,
        metadata.dimension3,
    )
    return header + payload

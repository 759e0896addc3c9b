from __future__ import annotations

from typing import TYPE_CHECKING

from ..protocol.image_bytes import BASE64_HANDOFF_HEADER, IMAGE_BYTES_MIME_TYPE
from ..protocol.transport import APPLICATION_JSON_MIME_TYPE
from ..protocol.validator import AdditionalCheck
from .utils import CAMERA_STATE_EXPOSING, param

if TYPE_CHECKING:
    from ..protocol.tester import AlpacaProtocolTester

_READ_ONLY_BLOCKS = (
    ("BayerOffsetX", "BayerOffsetY"),
    (
        "CameraState",
        "CameraXSize",
        "CameraYSize",
        "CanAbortExposure",
        "CanAsymmetricBin",
        "CanFastReadout",
        "CanGetCoolerPower",
        "CanPulseGuide",
        "CanSetCCDTemperature",
        "CanStopExposure",
        "CCDTemperature",
    ),
    ("CoolerPower", "ElectronsPerADU", "ExposureMax", "ExposureMin", "ExposureResolution"),
    ("FullWellCapacity",),
    (
        "GainMax",
        "GainMin",
        "Gains",
        "HasShutter",
        "HeatSinkTemperature",
        "ImageReady",
        "IsPulseGuiding",
        "MaxADU",
        "MaxBinX",
        "MaxBinY",
    ),
    ("OffsetMax", "OffsetMin", "Offsets", "PercentCompleted", "PixelSizeX", "PixelSizeY"),
    ("ReadoutModes", "SensorName", "SensorType"),
)

# Writable properties checked after each read-only block, with the value sent if the device returns none.
_WRITABLE_BLOCKS = (
    (("BinX", "1"), ("BinY", "1")),
    (("CoolerOn", "False"),),
    (("FastReadout", "False"),),
    (("Gain", "1"),),
    (("NumX", "1"), ("NumY", "1"), ("Offset", "1")),
    (("ReadoutMode", "1"),),
    (("SetCCDTemperature", "1"), ("StartX", "1"), ("StartY", "1"), ("SubExposureDuration", "1")),
)


def image_transfer_headers(transfer_type: str) -> dict[str, str]:
    """Extra request headers that advertise the configured image array transfer encodings."""
    headers: dict[str, str] = {}
    if transfer_type in ("base64handoff", "bestavailable"):
        headers[BASE64_HANDOFF_HEADER] = "true"
    if transfer_type in ("imagebytes", "bestavailable"):
        headers["Accept"] = f"{APPLICATION_JSON_MIME_TYPE}, {IMAGE_BYTES_MIME_TYPE}"
    return headers


async def check_camera(tester: "AlpacaProtocolTester") -> None:
    settings = tester.settings
    await tester.test_connect()

    for read_only, writable in zip(_READ_ONLY_BLOCKS, _WRITABLE_BLOCKS):
        for member in read_only:
            await tester.get_member(member)
        for member, default in writable:
            await tester.get_and_put(member, default)
    if tester.session.cancelled:
        return

    exposing = tester.settle_while(
        "StartExposure", "CameraState", CAMERA_STATE_EXPOSING, timeout=settings.standard_response_timeout
    )
    await tester.put_member("AbortExposure")
    await tester.put_member("PulseGuide", param("Direction", 0), param("Duration", 1))
    await tester.put_member(
        "StartExposure",
        param("Duration", settings.camera_exposure_duration),
        param("Light", False),
        wait=exposing,
    )
    await tester.put_member("StopExposure")
    if tester.session.cancelled:
        return

    async with tester.client.scoped_headers(image_transfer_headers(settings.image_array_transfer_type)):
        for member in ("ImageArray", "ImageArrayVariant"):
            tester.session.set_status(f"Getting {member}...")
            await tester.get_member(member, additional_check=AdditionalCheck.IMAGE_ARRAY)
        tester.session.set_status("")

    await tester.get_member("LastExposureDuration")
    await tester.get_member("LastExposureStartTime")

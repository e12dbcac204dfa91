"""FastAPI gateway exposing the vented-box engine over JSON."""

from __future__ import annotations

import logging
import math
from typing import Any, Literal

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from vent_core import (
    LOSSLESS,
    DriverParameters,
    EmpiricalLoading,
    ImpedanceCurve,
    InvalidParameterError,
    MeasurementError,
    PowerLimitSolver,
    ResonatorLoading,
    SensitivityAnalyzer,
    UnsatisfiableAlignmentError,
    UnsupportedAlignmentError,
    VentCoreError,
    VentedBoxDesign,
    VentedBoxSystem,
    coefficients_of,
    design_enclosure,
    enclosure_for_solution,
    estimate_vas,
    excursion_model_for,
    get_alignment,
    identify_peaks,
    recover_parameters,
    synthesize_alignment,
)

logger = logging.getLogger(__name__)

# Domain errors caused by caller input map to 422; everything else in the family to 400.
_UNPROCESSABLE = (InvalidParameterError, MeasurementError, UnsatisfiableAlignmentError)


def _http_error(exc: VentCoreError) -> HTTPException:
    if isinstance(exc, UnsupportedAlignmentError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, _UNPROCESSABLE):
        return HTTPException(status_code=422, detail=str(exc))
    logger.warning("Solver failure surfaced to client: %s", exc)
    return HTTPException(status_code=400, detail=str(exc))


def _finite_or_none(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return value


def _check_frequencies(frequencies_hz: list[float]) -> None:
    for freq in frequencies_hz:
        if not math.isfinite(freq) or freq <= 0.0:
            raise HTTPException(status_code=422, detail=f"Frequency {freq!r} must be a positive number")


class DriverPayload(BaseModel):
    fs_hz: float = Field(..., gt=0)
    qts: float = Field(..., gt=0)
    vas_l: float = Field(..., gt=0)
    re_ohm: float = Field(..., gt=0)
    qes: float | None = Field(None, gt=0)
    qms: float | None = Field(None, gt=0)
    bl_t_m: float | None = Field(None, gt=0)
    mms_kg: float | None = Field(None, gt=0)
    cms_m_per_n: float | None = Field(None, gt=0)
    rms_kg_s: float | None = Field(None, gt=0)
    sd_m2: float | None = Field(None, gt=0)
    xmax_mm: float | None = Field(None, gt=0)
    pe_w: float | None = Field(None, gt=0)
    le_h: float = Field(0.0, ge=0)

    def to_driver(self) -> DriverParameters:
        return DriverParameters(**self.model_dump(exclude_none=True))


class VentedBoxPayload(BaseModel):
    volume_l: float = Field(..., gt=0)
    fb_hz: float = Field(..., gt=0)
    leakage_q: float | None = Field(None, gt=0, description="Omit for a lossless mechanism")
    absorption_q: float | None = Field(None, gt=0)
    port_q: float | None = Field(None, gt=0)

    def to_box(self) -> VentedBoxDesign:
        return VentedBoxDesign(
            volume_l=self.volume_l,
            fb_hz=self.fb_hz,
            leakage_q=self.leakage_q or LOSSLESS,
            absorption_q=self.absorption_q or LOSSLESS,
            port_q=self.port_q or LOSSLESS,
        )


class ResponseRequest(BaseModel):
    driver: DriverPayload
    box: VentedBoxPayload
    frequencies_hz: list[float] = Field(..., min_length=1)


class AlignmentRequest(BaseModel):
    driver: DriverPayload
    alignment: str = Field("B4")
    ripple_db: float | None = Field(None, gt=0)
    enclosure_q: float | None = Field(None, gt=0)
    allow_experimental: bool = Field(False)


class MaxPowerRequest(BaseModel):
    driver: DriverPayload
    box: VentedBoxPayload
    frequencies_hz: list[float] = Field(..., min_length=1)
    loading: Literal["resonator", "empirical"] = Field("resonator")
    requested_power_w: float | None = Field(None, gt=0)


class SensitivityRequest(BaseModel):
    driver: DriverPayload
    box: VentedBoxPayload


class ImpedanceRequest(BaseModel):
    points: list[tuple[float, float]] = Field(..., min_length=3)
    volume_l: float | None = Field(None, gt=0)


def vented_response_payload(payload: ResponseRequest) -> dict[str, Any]:
    _check_frequencies(payload.frequencies_hz)
    try:
        system = VentedBoxSystem(payload.driver.to_driver(), payload.box.to_box())
        samples = [sample.to_dict() for sample in system.response_curve(payload.frequencies_hz)]
        delays = [system.group_delay(freq) * 1000.0 for freq in payload.frequencies_hz]
        summary = system.summary().to_dict()
    except VentCoreError as exc:
        raise _http_error(exc) from exc
    return {"summary": summary, "response": samples, "group_delay_ms": delays}


def vented_alignment_payload(payload: AlignmentRequest) -> dict[str, Any]:
    enclosure_q = payload.enclosure_q or LOSSLESS
    name = payload.alignment.strip().upper()
    try:
        driver = payload.driver.to_driver()
        solution = None
        if name == "QB3":
            box = design_enclosure(driver, name, enclosure_q, allow_experimental=payload.allow_experimental)
        else:
            target = get_alignment(name, ripple_db=payload.ripple_db, allow_experimental=payload.allow_experimental)
            solution = synthesize_alignment(
                driver.qts,
                target,
                enclosure_q,
                qes=driver.qes,
                qms=driver.qms,
                allow_experimental=payload.allow_experimental,
            )
            box = enclosure_for_solution(driver, solution)
    except VentCoreError as exc:
        raise _http_error(exc) from exc

    result: dict[str, Any] = {
        "alignment": name,
        "box": {
            "volume_l": box.volume_l,
            "fb_hz": box.fb_hz,
            "enclosure_q": _finite_or_none(box.enclosure_q()),
        },
    }
    if solution is not None:
        result["solution"] = solution.to_dict()
        result["target_coefficients"] = list(target.coefficients())
        result["achieved_coefficients"] = list(coefficients_of(solution))
    return result


def vented_max_power_payload(payload: MaxPowerRequest) -> dict[str, Any]:
    _check_frequencies(payload.frequencies_hz)
    loading = EmpiricalLoading() if payload.loading == "empirical" else ResonatorLoading()
    try:
        driver = payload.driver.to_driver()
        model = excursion_model_for(driver, payload.box.to_box(), loading=loading)
        solver = PowerLimitSolver(driver, model)
        limits = [limit.to_dict() for limit in solver.power_limit_curve(payload.frequencies_hz)]
        warnings: list[dict[str, Any]] = []
        if payload.requested_power_w is not None:
            warnings = [
                warning.to_dict()
                for warning in solver.power_warnings(payload.requested_power_w, payload.frequencies_hz)
            ]
    except VentCoreError as exc:
        raise _http_error(exc) from exc
    return {"loading": loading.name, "exact_loading": loading.exact, "limits": limits, "warnings": warnings}


def vented_sensitivity_payload(payload: SensitivityRequest) -> dict[str, Any]:
    try:
        analyzer = SensitivityAnalyzer(payload.driver.to_driver(), payload.box.to_box())
        return analyzer.all().to_dict()
    except VentCoreError as exc:
        raise _http_error(exc) from exc


def impedance_extract_payload(payload: ImpedanceRequest) -> dict[str, Any]:
    try:
        curve = ImpedanceCurve.from_pairs(payload.points)
        peaks = identify_peaks(curve)
        recovered = recover_parameters(peaks)
        result: dict[str, Any] = {"peaks": peaks.to_dict(), "parameters": recovered.to_dict()}
        if payload.volume_l is not None:
            result["vas_l"] = estimate_vas(recovered, payload.volume_l)
    except VentCoreError as exc:
        raise _http_error(exc) from exc
    return result


app = FastAPI(title="Vent-Core Gateway", version="0.1.0")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/vented/response")
async def vented_response(payload: ResponseRequest) -> dict[str, Any]:
    return vented_response_payload(payload)


@app.post("/vented/alignment")
async def vented_alignment(payload: AlignmentRequest) -> dict[str, Any]:
    return vented_alignment_payload(payload)


@app.post("/vented/max-power")
async def vented_max_power(payload: MaxPowerRequest) -> dict[str, Any]:
    return vented_max_power_payload(payload)


@app.post("/vented/sensitivity")
async def vented_sensitivity(payload: SensitivityRequest) -> dict[str, Any]:
    return vented_sensitivity_payload(payload)


@app.post("/impedance/extract")
async def impedance_extract(payload: ImpedanceRequest) -> dict[str, Any]:
    return impedance_extract_payload(payload)


__all__ = [
    "app",
    "DriverPayload",
    "VentedBoxPayload",
    "ResponseRequest",
    "AlignmentRequest",
    "MaxPowerRequest",
    "SensitivityRequest",
    "ImpedanceRequest",
    "vented_response_payload",
    "vented_alignment_payload",
    "vented_max_power_payload",
    "vented_sensitivity_payload",
    "impedance_extract_payload",
]

from __future__ import annotations

from flask import Blueprint, request

from app.aigency.modules.roi.calculator import calculate_roi
from app.aigency.modules.roi.schemas import RoiIn
from app.aigency.security import csrf_exempt
from app.aigency.utils import ok, request_payload
from app.aigency.validation import validate_payload

bp = Blueprint("roi", __name__)


def _calculate(payload: dict):
    data = validate_payload(RoiIn, payload)
    result = calculate_roi(**data.model_dump())
    return ok(inputs=data.model_dump(), results=result.to_dict())


@bp.get("/calculate")
def roi_calculate_get():
    return _calculate({k: v for k, v in request.args.items() if v != ""})


@bp.post("/calculate")
@csrf_exempt
def roi_calculate_post():
    return _calculate({k: v for k, v in request_payload().items() if v != ""})

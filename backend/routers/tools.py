"""
routers/tools.py: Calculator, unit converter and markup rendering for the tools panel.
"""

import asyncio

from fastapi import APIRouter, HTTPException

from config import Config
from dependencies import CurrentUser
from logging_config import get_logger
from schemas import CalculateRequest, ConvertRequest, RenderRequest
from services.calculator import CalculationError, evaluate_expression
from services.math_renderer import render_math_markup
from services.unit_converter import ConversionError, convert, list_units

logger = get_logger(__name__)
router = APIRouter(prefix="/tools", tags=["tools"])


@router.post("/calculate")
async def calculate(data: CalculateRequest, current_user: CurrentUser):
    loop = asyncio.get_running_loop()
    try:
        result = await asyncio.wait_for(
            loop.run_in_executor(None, evaluate_expression, data.expression),
            timeout=Config.CALC_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.warning("calculate.timeout", length=len(data.expression))
        raise HTTPException(status_code=400, detail="Error")
    except CalculationError:
        raise HTTPException(status_code=400, detail="Error")
    return {"expression": data.expression, "result": result}


@router.get("/units")
async def units(current_user: CurrentUser):
    return {"categories": list_units()}


@router.post("/convert")
async def convert_units(data: ConvertRequest, current_user: CurrentUser):
    try:
        result = convert(data.category, data.value, data.from_unit, data.to_unit)
    except ConversionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"result": result, "unit": data.to_unit}


@router.post("/render")
async def render(data: RenderRequest, current_user: CurrentUser):
    return {"html": render_math_markup(data.content)}

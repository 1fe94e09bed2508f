import math
from typing import Any, Optional, Tuple

from homecare.core.constants import BMICategoryEnum
from homecare.utils.formatting import round_half_up

# weight in pounds, height in inches
BMI_FACTOR = 703


def parse_positive(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def bmi_category(bmi: float) -> BMICategoryEnum:
    if bmi < 18.5:
        return BMICategoryEnum.UNDERWEIGHT
    if bmi < 25.0:
        return BMICategoryEnum.NORMAL
    if bmi < 30.0:
        return BMICategoryEnum.OVERWEIGHT
    return BMICategoryEnum.OBESE


def compute_bmi(weight: Any, height: Any) -> Optional[Tuple[float, BMICategoryEnum]]:
    """BMI rounded to one decimal; the category is taken from the rounded value."""
    weight_lbs = parse_positive(weight)
    height_in = parse_positive(height)
    if weight_lbs is None or height_in is None:
        return None

    bmi = round_half_up(weight_lbs / (height_in * height_in) * BMI_FACTOR, 1)
    return bmi, bmi_category(bmi)


def format_bmi(bmi: float) -> str:
    text = f"{bmi:.1f}"
    return text[:-2] if text.endswith(".0") else text


def calculate_bmi(weight: Any, height: Any) -> Tuple[str, str]:
    """Form-facing variant: blank, non-numeric or non-positive input yields ("", "")."""
    result = compute_bmi(weight, height)
    if result is None:
        return "", ""
    bmi, category = result
    return format_bmi(bmi), category.value

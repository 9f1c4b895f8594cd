# medvault_pkg/metrics/services.py
import math


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def _average(values):
    return sum(values) / len(values) if values else None


def compute_health_summary(readings):
    """
    Averages over the readings that carry each field. Blood pressure only counts
    readings with both systolic and diastolic. A field with no readings is None.
    Accepts metric dicts as returned by the health metric repository.
    """
    heart_rates = [r['heart_rate'] for r in readings if r.get('heart_rate') is not None]
    pressures = [(r['systolic'], r['diastolic']) for r in readings
                 if r.get('systolic') is not None and r.get('diastolic') is not None]
    sugars = [r['blood_sugar'] for r in readings if r.get('blood_sugar') is not None]
    temperatures = [r['temperature'] for r in readings if r.get('temperature') is not None]

    heart_rate = _average(heart_rates)
    blood_sugar = _average(sugars)
    temperature = _average(temperatures)

    blood_pressure = None
    if pressures:
        blood_pressure = {
            "systolic": _round_half_up(_average([s for s, _ in pressures])),
            "diastolic": _round_half_up(_average([d for _, d in pressures]))
        }

    return {
        "average_heart_rate": _round_half_up(heart_rate) if heart_rate is not None else None,
        "average_blood_pressure": blood_pressure,
        "average_blood_sugar": _round_half_up(blood_sugar) if blood_sugar is not None else None,
        "average_temperature": round(temperature, 1) if temperature is not None else None,
        "reading_count": len(readings)
    }

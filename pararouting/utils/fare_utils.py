import math


def calculate_fare(base_fare: float, per_km: float, distance_km: float) -> float:
    """
    Distance-based fare: flat boarding charge plus a per-kilometre rate
    Args:
        base_fare: Flat charge in pesos
        per_km: Rate per kilometre in pesos
        distance_km: Distance in kilometers
    Returns:
        Fare amount in pesos
    """
    return base_fare + max(0.0, distance_km) * per_km


def calculate_zone_fare(base_fare: float, per_km: float, distance_km: float) -> float:
    """Zone (franchise area) fares are charged in whole pesos, rounded up."""
    # round first so float noise such as 23.000000000000004 does not add a peso
    return float(math.ceil(round(calculate_fare(base_fare, per_km, distance_km), 6)))


def apply_discount(fare: float, discount_rate: float) -> float:
    """Student / senior / PWD fare, rounded to centavos."""
    return round(fare * (1.0 - discount_rate), 2)

import numpy as np

EARTH_RADIUS_KM = 6371


def haversine_distance(lat1, lon1, lat2, lon2):
    """Great-circle distance in km. Accepts scalars or pandas/numpy arrays."""
    lat1_rad, lon1_rad = np.radians(lat1), np.radians(lon1)
    lat2_rad, lon2_rad = np.radians(lat2), np.radians(lon2)
    dlon = lon2_rad - lon1_rad
    dlat = lat2_rad - lat1_rad
    a = np.sin(dlat/2)**2 + np.cos(lat1_rad)*np.cos(lat2_rad)*np.sin(dlon/2)**2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1-a))
    return EARTH_RADIUS_KM*c


def estimate_eta_minutes(distance_km: float, average_speed_kmh: float) -> int:
    """Rough city-traffic ETA, never below one minute."""
    return max(1, round(distance_km / average_speed_kmh * 60))

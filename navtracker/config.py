from pydantic_settings import BaseSettings

from navtracker.schemas.route import TravelMode


class Settings(BaseSettings):
    # Geofences and proximity thresholds (metres)
    anchor_radius_m: float = 50.0
    start_noise_radius_m: float = 50.0
    departure_buffer_percent: float = 5.0
    arrival_radius_m: float = 50.0
    upcoming_instruction_radius_m: float = 300.0
    voice_trigger_radius_m: float = 200.0
    step_join_tolerance_m: float = 30.0

    arrival_grace_seconds: float = 3.0

    # Policy speeds per travel mode (km/h), not measured
    driving_speed_kmh: float = 30.0
    bicycling_speed_kmh: float = 15.0
    walking_speed_kmh: float = 5.0

    initial_fix_timeout_seconds: float = 15.0
    low_accuracy_timeout_seconds: float = 30.0

    voice_enabled: bool = False
    voice_rate: int = 150

    redis_url: str = ""
    directions_base_url: str = "https://maps.googleapis.com"
    directions_api_key: str = ""
    directions_timeout_seconds: float = 10.0

    model_config = {"env_prefix": "NAV_", "case_sensitive": False}

    def speed_kmh(self, mode: TravelMode) -> float:
        if mode == TravelMode.WALKING:
            return self.walking_speed_kmh
        if mode == TravelMode.BICYCLING:
            return self.bicycling_speed_kmh
        return self.driving_speed_kmh


settings = Settings()

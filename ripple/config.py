"""Application configuration."""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings."""
    
    # App
    app_name: str = "Ripple Echo Simulator"
    debug: bool = False
    log_level: str = "INFO"
    
    # File Upload
    max_file_size_mb: int = 10
    
    # CORS
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    
    # Plate preferences
    source_plate_size: int = 384
    destination_plate_size: int = 384
    
    # Input form defaults
    dmso_tolerance: float = 0.005
    assay_volume_ul: float = 25.0
    backfill_volume_ul: float = 10.0
    allowed_error: float = 0.1
    destination_replicates: int = 1
    use_intermediate_plates: bool = True
    dmso_normalization: bool = True
    
    # Curve fitting
    fit_max_iterations: int = 100
    
    class Config:
        env_file = ".env"
        env_prefix = "RIPPLE_"


settings = Settings()

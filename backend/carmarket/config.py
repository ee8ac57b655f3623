from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Car Marketplace"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    api_prefix: str = "/api/v1"

    # The managed platform's Postgres; sqlite is only for local runs and tests
    database_url: str = "sqlite:///./carmarket.db"

    # Managed platform (auth + storage REST APIs)
    platform_url: str = "http://localhost:54321"
    platform_anon_key: str = ""
    platform_service_key: str = ""
    platform_timeout_seconds: float = 15.0

    storage_bucket: str = "car-images"
    max_images_per_listing: int = 5
    max_image_size_mb: int = 10
    allowed_image_extensions: str = ".jpg,.jpeg,.png,.webp,.gif"

    page_size: int = 6
    query_cache_ttl_seconds: float = 30.0
    query_cache_max_entries: int = 1024

    cors_origins: str = "http://localhost:3000"
    oauth_redirect_url: str = "http://localhost:3000/"
    password_reset_redirect_url: str = "http://localhost:3000/update-password"

    whatsapp_base_url: str = "https://wa.me"
    map_embed_base_url: str = "https://www.openstreetmap.org/export/embed.html"
    map_link_base_url: str = "https://www.google.com/maps"

    model_config = {"env_file": ".env"}


settings = Settings()

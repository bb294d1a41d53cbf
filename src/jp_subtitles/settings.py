from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Subtitle resolver settings.

    All settings can be overridden via environment variables or a .env file.
    Environment variables use the JP_SUBS_ prefix (e.g. JP_SUBS_GITHUB_TOKEN=...).

    Without a GitHub token the crawler runs at the unauthenticated rate limit
    (60 requests/hour), which a couple of deep crawls can exhaust.
    """
    github_token: Optional[str] = None
    github_api_base: str = "https://api.github.com"
    repository: str = "Ajatt-Tools/kitsunekko-mirror"
    repository_root: str = "subtitles"
    user_agent: str = "Kuraji-Extension"

    anilist_url: str = "https://graphql.anilist.co"
    jikan_base: str = "https://api.jikan.moe/v4"
    episode_max_pages: int = 50

    max_depth: int = 4
    crawl_delay_ms: int = 150  # pause before each subdirectory listing
    debounce_ms: int = 1000
    fuzzy_threshold: float = 0.7
    request_timeout: float = 15.0

    no_record_text: str = "Kuraji -「クラジ」"

    host: str = "127.0.0.1"
    port: int = 8000

    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[str] = None

    class Config:
        env_prefix = "JP_SUBS_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def contents_url(self) -> str:
        return f"{self.github_api_base}/repos/{self.repository}/contents/{self.repository_root}"


settings = Settings()


def get_settings() -> Settings:
    return settings

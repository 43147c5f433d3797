# speaktime/utils/config.py
from pydantic_settings import BaseSettings
from pydantic import Field
import json
from pathlib import Path


class TimerSettings(BaseSettings):
    tick_interval_seconds: float = 1.0


class LeaderboardSettings(BaseSettings):
    podium_size: int = 3


class Settings(BaseSettings):
    # App settings
    app_name: str = "SpeakTime"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False)

    # API settings
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000)

    # Database
    database_url: str = Field(default="sqlite:///./speaktime.db")

    # Logging settings
    log_level: str = Field(default="INFO")
    log_file: str = Field(default="logs/app.log")

    # Identidad usada cuando la petición no trae X-User-Id
    default_user_id: str = Field(default="local-user")

    # Sub-settings
    timer: TimerSettings = TimerSettings()
    leaderboard: LeaderboardSettings = LeaderboardSettings()

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "allow"

    def load_from_json(self, config_path: str = "config/settings.json"):
        """Cargar configuración desde archivo JSON"""
        path = Path(config_path)
        if path.exists():
            with open(path, 'r') as f:
                config_data = json.load(f)

            if 'timer' in config_data:
                self.timer = TimerSettings(**config_data['timer'])
            if 'leaderboard' in config_data:
                self.leaderboard = LeaderboardSettings(**config_data['leaderboard'])


# Instancia global de configuración
settings = Settings()
settings.load_from_json()

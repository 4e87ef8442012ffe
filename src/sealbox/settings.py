from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    sealbox_data_dir: Path = Path("./data")
    # Derived from the data dir when unset
    sealbox_containers_dir: Path | None = None
    sealbox_source_dir: Path | None = None

    # Trust service (timestamping authority) selection
    trust_backend: Literal["local", "http"] = "local"
    trust_url: str = "http://localhost:8080"
    trust_login_id: str = ""
    trust_login_key: str = ""
    trust_timeout_seconds: float = 10.0
    # Aggregator identity segments placed before the submitter id (comma separated via env)
    trust_identity_prefix: str = "GT,GT,sealbox"

    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 1234

    def containers_path(self) -> Path:
        return self.sealbox_containers_dir or self.sealbox_data_dir / "containers"

    def source_path(self) -> Path:
        return self.sealbox_source_dir or self.sealbox_data_dir / "files"

    def keys_path(self) -> Path:
        return self.sealbox_data_dir / "keys"

    def identity_prefix(self) -> list[str]:
        return [s.strip() for s in self.trust_identity_prefix.split(",") if s.strip()]


settings = Settings()

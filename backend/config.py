import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

_BACKEND_DIR = Path(__file__).parent


@dataclass(frozen=True)
class Settings:
    llm_provider: str = "lmstudio"
    lmstudio_url: str = "http://localhost:1234/v1"
    lmstudio_model: str = "openai/gpt-oss-20b"
    anthropic_model: str = "claude-sonnet-4-6"
    frontend_url: str = "http://localhost:4200"
    max_file_size: int = 10 * 1024 * 1024
    port: int = 3000
    public_base_url: str = "http://localhost:3000"
    generated_pdf_dir: Path = _BACKEND_DIR / "generated-pdfs"
    max_agent_steps: int = 5
    log_level: str = "INFO"

    @property
    def max_file_size_mb(self) -> int:
        return max(1, self.max_file_size // (1024 * 1024))


def load_settings() -> Settings:
    """Read settings from the environment, falling back to the defaults above."""
    defaults = Settings()
    return Settings(
        llm_provider=os.getenv("LLM_PROVIDER", defaults.llm_provider).lower(),
        lmstudio_url=os.getenv("LMSTUDIO_URL", defaults.lmstudio_url),
        lmstudio_model=os.getenv("LMSTUDIO_MODEL", defaults.lmstudio_model),
        anthropic_model=os.getenv("ANTHROPIC_MODEL", defaults.anthropic_model),
        frontend_url=os.getenv("FRONTEND_URL", defaults.frontend_url),
        max_file_size=int(os.getenv("MAX_FILE_SIZE", defaults.max_file_size)),
        port=int(os.getenv("PORT", defaults.port)),
        public_base_url=os.getenv("PUBLIC_BASE_URL", defaults.public_base_url).rstrip("/"),
        generated_pdf_dir=Path(os.getenv("GENERATED_PDF_DIR", defaults.generated_pdf_dir)),
        max_agent_steps=int(os.getenv("MAX_AGENT_STEPS", defaults.max_agent_steps)),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )

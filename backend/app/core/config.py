import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


@dataclass(frozen=True)
class Settings:
    database_url: str
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    db_pool_min: int = 1
    db_pool_max: int = 10
    db_pool_timeout: float = 30.0
    db_pool_max_waiting: int = 100
    db_health_timeout: float = 2.0
    cors_origins: tuple[str, ...] = ("*",)
    run_migrations: bool = True
    migrations_dir: Path = DEFAULT_MIGRATIONS_DIR
    password_min_len: int = 8


def parse_origins(raw: str | None) -> tuple[str, ...]:
    origins = tuple(o.strip() for o in (raw or "").split(",") if o.strip())
    return origins or ("*",)


def load_settings() -> Settings:
    database_url = (os.getenv("DATABASE_URL") or "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is required")

    port = os.getenv("PORT", "3000")
    try:
        port_num = int(port)
    except ValueError:
        raise RuntimeError(f"Invalid PORT value: {port}")

    db_pool_min = max(1, int(os.getenv("DB_POOL_MIN", "1")))
    db_pool_max = max(db_pool_min, int(os.getenv("DB_POOL_MAX", "10")))

    return Settings(
        database_url=database_url,
        host=(os.getenv("HOST") or "0.0.0.0").strip() or "0.0.0.0",
        port=port_num,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper() or "INFO",
        db_pool_min=db_pool_min,
        db_pool_max=db_pool_max,
        db_pool_timeout=float(os.getenv("DB_POOL_TIMEOUT", "30")),
        db_pool_max_waiting=int(os.getenv("DB_POOL_MAX_WAITING", "100")),
        db_health_timeout=float(os.getenv("DB_HEALTH_TIMEOUT", "2")),
        cors_origins=parse_origins(os.getenv("CORS_ORIGINS")),
        run_migrations=os.getenv("RUN_MIGRATIONS", "true").lower() == "true",
        migrations_dir=Path(os.getenv("MIGRATIONS_DIR") or DEFAULT_MIGRATIONS_DIR),
        password_min_len=max(1, int(os.getenv("PASSWORD_MIN_LEN", "8"))),
    )

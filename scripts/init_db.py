import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text  # noqa: E402

from tokenhub.config import settings  # noqa: E402
from tokenhub.database.connection import engine  # noqa: E402
from tokenhub.logging_config import setup_logging  # noqa: E402
from tokenhub.models import Base  # noqa: E402

logger = logging.getLogger("tokenhub.scripts.init_db")


def init_db():
    """데이터베이스 초기화 (스키마 + 전체 테이블)"""
    try:
        if engine.dialect.name == "postgresql":
            with engine.connect() as conn:
                conn.execute(
                    text(f"CREATE SCHEMA IF NOT EXISTS {settings.POSTGRES_SCHEMA}")
                )
                conn.commit()

        Base.metadata.create_all(bind=engine)
        logger.info(
            f"Database initialized: {', '.join(sorted(Base.metadata.tables))}"
        )
    except Exception:
        logger.exception("Database initialization failed")
        raise


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL, json_logs=False)
    init_db()

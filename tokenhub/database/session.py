from tokenhub.database.connection import SessionLocal


def get_db():
    """요청 단위 세션. 예외가 나면 열린 트랜잭션을 롤백하고 다시 던짐"""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()

from artisan_market.store.database import Base, SessionLocal, engine, get_db, init_db, session_scope

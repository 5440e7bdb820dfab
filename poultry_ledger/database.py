"""Database configuration and initialization."""
from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntegerPK = BigInteger().with_variant(Integer, 'sqlite')

# Global session and engine
engine = None
db_session = None


def _engine_options(app) -> dict:
    """Build create_engine() keyword arguments for the configured backend."""
    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    options = {'echo': app.config.get('SQLALCHEMY_ECHO', False)}

    if database_uri.startswith('sqlite'):
        # One shared connection so an in-memory database survives across sessions
        options['connect_args'] = {'check_same_thread': False}
        options['poolclass'] = StaticPool
        return options

    timeout_ms = int(app.config.get('SQLALCHEMY_STATEMENT_TIMEOUT', 10)) * 1000
    options.update(
        pool_pre_ping=True,  # Enable connection health checks
        pool_size=10,
        max_overflow=20,
        connect_args={'options': f'-c statement_timeout={timeout_ms}'},
    )
    return options


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    if db_session is not None:
        db_session.remove()
    if engine is not None:
        engine.dispose()

    engine = create_engine(app.config['SQLALCHEMY_DATABASE_URI'], **_engine_options(app))

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    )

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table registered on Base (models must be imported first)."""
    import poultry_ledger.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table registered on Base."""
    import poultry_ledger.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session

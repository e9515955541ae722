# factory.py
from flask import Flask, jsonify
from flask_caching import Cache
from werkzeug.exceptions import HTTPException

from . import config
from .blueprints.cron_bp import cron_bp
from .blueprints.kpi_entry_bp import kpi_entry_bp
from .blueprints.kpi_template_bp import kpi_template_bp
from .db_manager import DBManager
from .errors import KpiError
from .logger_setup import setup_production_logging
from .scheduler import KpiScheduler
from .schema import init_schema
from .services.audit_service import AuditService
from .services.batch_service import BatchService
from .services.kpi_entry_service import KpiEntryService
from .services.kpi_template_service import KpiTemplateService
from .services.member_service import MemberService
from .services.scoring_service import ScoringService
from .services.statistics_service import StatisticsService

# Cache object, bound to the app in create_app
cache = Cache()


def create_app(overrides=None):
    """Application factory. ``overrides`` is merged into app.config (tests pass a SQLite URI and a fixed clock)."""
    app = Flask('kpi_server')

    app.config['SECRET_KEY'] = config.APP_SECRET_KEY
    app.config['DATABASE_URI'] = config.SQLALCHEMY_DATABASE_URI
    app.config['LOG_DIR'] = config.LOG_DIR
    app.config['KPI_CLOCK'] = None

    # --- CACHE (Redis db 2, statistics only) ---
    app.config['CACHE_TYPE'] = config.CACHE_TYPE
    app.config['CACHE_REDIS_HOST'] = config.REDIS_HOST
    app.config['CACHE_REDIS_PORT'] = config.REDIS_PORT
    app.config['CACHE_REDIS_DB'] = 2
    app.config['CACHE_DEFAULT_TIMEOUT'] = config.STATS_CACHE_TIMEOUT
    app.config['CACHE_KEY_PREFIX'] = 'kpi_cache_'

    app.config.update(overrides or {})

    if not app.config['SECRET_KEY']:
        raise RuntimeError("APP_SECRET_KEY is not set; sessions cannot be verified.")

    # 1. Logging
    setup_production_logging(app, app.config['LOG_DIR'])

    cache.init_app(app)
    app.cache = cache

    # 2. Store
    db_manager = DBManager(app.config['DATABASE_URI'])
    init_schema(db_manager.engine)
    app.db_manager = db_manager

    # 3. Services (dependency injection)
    clock = app.config['KPI_CLOCK']
    app.audit_service = AuditService(db_manager)
    app.member_service = MemberService(db_manager)
    app.member_service.seed_supervision()
    app.scoring_service = ScoringService()
    app.kpi_template_service = KpiTemplateService(db_manager, app.audit_service)
    app.kpi_entry_service = KpiEntryService(
        db_manager,
        app.kpi_template_service,
        app.member_service,
        app.scoring_service,
        app.audit_service,
        clock=clock,
    )
    app.batch_service = BatchService(
        db_manager,
        app.kpi_template_service,
        app.member_service,
        app.audit_service,
        chunk_size=app.config.get('BATCH_CHUNK_SIZE'),
        max_workers=app.config.get('BATCH_MAX_WORKERS'),
    )
    app.statistics_service = StatisticsService(db_manager, app.member_service, clock=clock)

    # Built here, started by server.py only
    app.kpi_scheduler = KpiScheduler(app.batch_service, app.kpi_template_service, clock=clock)

    # 4. Blueprints
    app.register_blueprint(kpi_entry_bp)
    app.register_blueprint(kpi_template_bp)
    app.register_blueprint(cron_bp)

    # 5. Error handlers
    @app.errorhandler(KpiError)
    def handle_kpi_error(e):
        app.logger.warning(f"{e.title} ({e.status_code}): {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return jsonify({'success': False, 'title': e.name, 'message': e.description}), e.code
        app.logger.exception(f"Unhandled error: {e}")
        return jsonify({'success': False, 'title': 'Internal Error', 'message': 'Internal server error.'}), 500

    return app

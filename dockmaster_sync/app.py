"""
Flask Application Factory
HTTP shell and scheduler around the Dockmaster sync engine.
"""

import os

from flask import Flask, jsonify
from flask_cors import CORS
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dockmaster_sync import __version__
from dockmaster_sync.config_manager import ConfigManager
from dockmaster_sync.database.connection import get_db
from dockmaster_sync.utils.helpers import utc_now
from dockmaster_sync.utils.logger import setup_logging, get_logger


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for Flask app.

    Args:
        config_name: Optional configuration name

    Returns:
        Configured Flask application
    """
    setup_logging()
    logger = get_logger(__name__)

    app = Flask(__name__)

    app.config['SECRET_KEY'] = os.getenv('FLASK_SECRET_KEY', 'dev-secret-key-change-in-production')
    app.json.sort_keys = False

    CORS(app)

    from dockmaster_sync.api.sync_routes import sync_bp
    from dockmaster_sync.api.workorder_routes import workorders_bp

    app.register_blueprint(sync_bp)
    app.register_blueprint(workorders_bp)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        db = get_db()
        db_healthy = db.check_connection()

        return jsonify({
            'status': 'healthy' if db_healthy else 'degraded',
            'timestamp': utc_now().isoformat(),
            'database': 'connected' if db_healthy else 'disconnected'
        })

    @app.route('/', methods=['GET'])
    def root():
        """Root endpoint with API info."""
        return jsonify({
            'name': 'Dockmaster Work Order Sync',
            'version': __version__,
            'endpoints': {
                '/health': 'Health check',
                '/api/sync/run': 'Run incremental sync (POST)',
                '/api/sync/status': 'Sync status per job (GET)',
                '/api/workorders/fetch': 'Open work orders for a customer boat (POST)'
            }
        })

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'error': 'Not found'
        }), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({
            'success': False,
            'error': 'Internal server error'
        }), 500

    logger.info("Flask application created")

    return app


def create_scheduler(app: Flask = None) -> BackgroundScheduler:
    """
    Create the background scheduler that runs the incremental sync.

    Runs never overlap within one process; a run that overruns its period
    makes the next one wait and missed runs collapse into one.

    Args:
        app: Optional Flask app for context

    Returns:
        Configured scheduler
    """
    logger = get_logger(__name__)
    config = ConfigManager()
    scheduler_config = config.get_scheduler_config()

    scheduler = BackgroundScheduler()

    if not scheduler_config.get('enabled', True):
        logger.info("Scheduler is disabled")
        return scheduler

    interval_minutes = int(scheduler_config.get('interval_minutes', 5))

    @scheduler.scheduled_job(
        IntervalTrigger(minutes=interval_minutes),
        id='incremental_sync',
        max_instances=1,
        coalesce=True
    )
    def scheduled_sync():
        """Scheduled incremental sync job."""
        logger.info("Running scheduled incremental sync")
        try:
            from dockmaster_sync.sync_engine import run_incremental_sync
            result = run_incremental_sync()
            if result.success:
                logger.info("Scheduled sync completed")
            else:
                logger.error(f"Scheduled sync failed: {result.error}")
        except Exception as e:
            logger.error(f"Scheduled sync failed: {e}")

    logger.info(f"Incremental sync scheduled every {interval_minutes} minutes")
    return scheduler


if __name__ == '__main__':
    app = create_app()
    scheduler = create_scheduler(app)
    scheduler.start()

    try:
        app.run(
            host='0.0.0.0',
            port=int(os.getenv('FLASK_PORT', 6922)),
            debug=os.getenv('FLASK_DEBUG', 'false').lower() == 'true'
        )
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown()

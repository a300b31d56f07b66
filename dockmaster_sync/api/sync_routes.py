"""
Sync API Blueprint
Endpoints for triggering and monitoring incremental sync runs.
"""

from flask import Blueprint, jsonify, request

from dockmaster_sync.database.gateway import PersistenceGateway
from dockmaster_sync.sync_engine import run_incremental_sync
from dockmaster_sync.utils.helpers import parse_datetime
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)

sync_bp = Blueprint('sync', __name__, url_prefix='/api/sync')


@sync_bp.route('/run', methods=['POST'])
def trigger_sync():
    """
    Trigger an incremental sync run.

    Query params:
        since: Optional ISO timestamp overriding the watermark window
        all_pages: If 'true', read every upstream page

    Returns:
        JSON run summary; HTTP 500 when the run failed
    """
    since_param = request.args.get('since')
    since = parse_datetime(since_param) if since_param else None
    if since_param and since is None:
        return jsonify({
            'success': False,
            'error': f"Invalid 'since' timestamp: {since_param}"
        }), 400

    all_pages = request.args.get('all_pages', 'false').lower() == 'true'
    logger.info(f"Sync triggered via API: since={since_param}, all_pages={all_pages}")

    result = run_incremental_sync(since=since, all_pages=all_pages)
    return jsonify(result.to_dict()), (200 if result.success else 500)


@sync_bp.route('/status', methods=['GET'])
def get_sync_status():
    """
    Get the sync status row of every job.

    Returns:
        JSON with list of job statuses
    """
    try:
        return jsonify({
            'success': True,
            'jobs': PersistenceGateway().list_sync_status()
        })

    except Exception as e:
        logger.error(f"Failed to get sync status: {e}")
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500

"""
Work Order API Blueprint
On-demand lookup of a customer boat's open work orders.
"""

from flask import Blueprint, jsonify, request

from dockmaster_sync.exceptions import AuthenticationError, DockmasterSyncError, UpstreamError
from dockmaster_sync.on_demand import build_cache_service
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)

workorders_bp = Blueprint('workorders', __name__, url_prefix='/api/workorders')


def _error(message: str, status_code: int):
    return jsonify({'success': False, 'error': message}), status_code


@workorders_bp.route('/fetch', methods=['POST'])
def fetch_work_orders():
    """
    Open work orders for a customer boat.

    JSON body:
        customerId: Dockmaster customer id
        boatId: Dockmaster boat id to filter on
        boatUuid: Local boat id the results are cached under
        refresh: Skip the cache when true

    Returns:
        JSON with ``workOrders``, ``fromCache`` and ``lastSynced``
    """
    body = request.get_json(silent=True) or {}

    try:
        service = build_cache_service()
        result = service.fetch(
            customer_id=body.get('customerId'),
            boat_id=body.get('boatId'),
            boat_uuid=body.get('boatUuid'),
            refresh=bool(body.get('refresh', False))
        )
    except ValueError as e:
        return _error(str(e), 400)
    except AuthenticationError as e:
        logger.error(f"Dockmaster authentication failed: {e}")
        return _error(str(e), 502)
    except UpstreamError as e:
        logger.error(f"Dockmaster request failed: {e}")
        status = e.status_code if e.status_code and e.status_code >= 400 else 502
        return _error(str(e), status)
    except DockmasterSyncError as e:
        logger.error(f"Work order fetch failed: {e}")
        return _error(str(e), 500)

    return jsonify({'success': True, **result})

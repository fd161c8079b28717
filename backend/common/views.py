from datetime import datetime, timezone
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status
import structlog

from livestock.services import get_livestock_service

logger = structlog.get_logger(__name__)


@api_view(['GET'])
def health_check(request):
    """
    Health check endpoint reporting the livestock deployment: addresses,
    total supply and number of staked tokens.
    """
    health_status = {
        'status': 'ok',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'services': {
            'livestock': {'status': 'unknown'},
        }
    }

    try:
        service = get_livestock_service()
        health_status['services']['livestock'] = {
            'status': 'healthy',
            **service.get_status()
        }
    except Exception as e:
        health_status['status'] = 'degraded'
        health_status['services']['livestock'] = {'status': 'unhealthy', 'error': str(e)}
        logger.error("Livestock health check failed", error=str(e))
        return Response(health_status, status=status.HTTP_503_SERVICE_UNAVAILABLE)

    logger.info(
        "Health check completed",
        overall_status=health_status['status'],
        total_supply=health_status['services']['livestock']['total_supply'],
        total_staked=health_status['services']['livestock']['total_staked']
    )

    return Response(health_status, status=status.HTTP_200_OK)

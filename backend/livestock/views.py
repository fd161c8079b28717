"""
Livestock REST API views.

Read endpoints expose the registry and LiveStake queries to dashboards and
indexers. Write endpoints take the caller identity from the
``X-Caller-Address`` header; ledger errors are turned into HTTP responses by
``common.middleware.custom_exception_handler``.
"""

from django.http import Http404
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status
import structlog

from .config import CALLER_HEADER
from .exceptions import Unauthorized
from .registry import Role
from .serializers import (
    ApproveSerializer,
    LivestockRecordSerializer,
    MintLivestockSerializer,
    OperatorApprovalSerializer,
    RoleAssignmentSerializer,
    TransferSerializer,
    UpdateMetadataSerializer,
)
from .services import get_livestock_service

logger = structlog.get_logger(__name__)


def _caller(request) -> str:
    caller = request.META.get(CALLER_HEADER)
    if not caller:
        raise Unauthorized("Missing X-Caller-Address header")
    return caller


def _livestock_payload(service, token_id):
    with service.lock:
        record = service.registry.get_livestock_metadata(token_id)
        data = record.to_dict()
        data['owner'] = service.registry.owner_of(token_id)
        data['has_report_access'] = service.stake_ledger.has_report_access(token_id)
    return LivestockRecordSerializer(data).data


def _token_list(token_ids, **extra):
    return Response({**extra, 'count': len(token_ids), 'token_ids': token_ids})


# ----------------------------------------------------------------------
# Registry reads
# ----------------------------------------------------------------------

@api_view(['GET'])
def livestock_status(request):
    """Deployment summary: addresses, total supply and staked count."""
    return Response(get_livestock_service().get_status())


@api_view(['GET'])
def all_livestocks(request):
    service = get_livestock_service()
    return _token_list(service.registry.get_all_livestocks())


@api_view(['GET'])
def livestock_detail(request, token_id):
    """Metadata of one token together with its holder and report access."""
    service = get_livestock_service()
    return Response(_livestock_payload(service, token_id))


@api_view(['GET'])
def livestocks_by_farm(request, farm_id):
    service = get_livestock_service()
    return _token_list(service.registry.get_livestocks_by_farm(farm_id), farm_id=farm_id)


@api_view(['GET'])
def livestocks_by_species(request, species):
    service = get_livestock_service()
    return _token_list(service.registry.get_livestocks_by_species(species), species=species)


@api_view(['GET'])
def livestocks_by_owner(request, address):
    service = get_livestock_service()
    return _token_list(service.registry.get_livestocks_by_owner(address), owner=address.lower())


@api_view(['GET'])
def role_members(request, role):
    try:
        role = Role(role)
    except ValueError:
        raise Http404(f"Unknown role: {role}")

    service = get_livestock_service()
    return Response({'role': role.value, 'members': service.registry.role_members(role)})


# ----------------------------------------------------------------------
# Registry writes
# ----------------------------------------------------------------------

@api_view(['POST'])
def mint_livestock(request):
    """
    Mint a livestock token. Caller must hold the farmer role.

    Body: to, species, birth_date, weight, health_status, farm_id
    """
    caller = _caller(request)
    serializer = MintLivestockSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    service = get_livestock_service()
    token_id = service.apply(service.registry.mint_livestock, caller, **serializer.validated_data)

    logger.info("Livestock minted via API", token_id=token_id, caller=caller)
    return Response(_livestock_payload(service, token_id), status=status.HTTP_201_CREATED)


@api_view(['POST'])
def update_livestock_metadata(request, token_id):
    """Overwrite weight and health status. Caller must hold the farmer role."""
    caller = _caller(request)
    serializer = UpdateMetadataSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    service = get_livestock_service()
    service.apply(
        service.registry.update_livestock_metadata,
        caller,
        token_id,
        serializer.validated_data['weight'],
        serializer.validated_data['health_status']
    )
    return Response(_livestock_payload(service, token_id))


@api_view(['POST'])
def approve_livestock(request, token_id):
    """Authorize a delegate (typically the LiveStake ledger) for one token."""
    caller = _caller(request)
    serializer = ApproveSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    service = get_livestock_service()
    service.apply(service.registry.approve, caller, serializer.validated_data['delegate'], token_id)
    return Response({'token_id': token_id, 'approved': service.registry.get_approved(token_id)})


@api_view(['POST'])
def set_operator_approval(request):
    caller = _caller(request)
    serializer = OperatorApprovalSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    service = get_livestock_service()
    service.apply(
        service.registry.set_approval_for_all,
        caller,
        serializer.validated_data['operator'],
        serializer.validated_data['approved']
    )
    return Response({
        'owner': caller.lower(),
        'operator': serializer.validated_data['operator'].lower(),
        'approved': serializer.validated_data['approved'],
    })


@api_view(['POST'])
def transfer_livestock(request, token_id):
    """Safe-transfer a token on behalf of the caller."""
    caller = _caller(request)
    serializer = TransferSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    service = get_livestock_service()
    service.apply(
        service.registry.safe_transfer_from,
        caller,
        serializer.validated_data['from_address'],
        serializer.validated_data['to'],
        token_id
    )
    return Response(_livestock_payload(service, token_id))


@api_view(['POST'])
def grant_role(request):
    """Grant a role (farmer by default). Caller must be an admin."""
    caller = _caller(request)
    serializer = RoleAssignmentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    service = get_livestock_service()
    service.apply(
        service.registry.grant_role,
        caller,
        serializer.validated_data['role'],
        serializer.validated_data['account']
    )
    return Response({
        'role': serializer.validated_data['role'],
        'account': serializer.validated_data['account'].lower(),
        'granted': True,
    })


@api_view(['POST'])
def revoke_role(request):
    """Revoke a role (farmer by default). Caller must be an admin."""
    caller = _caller(request)
    serializer = RoleAssignmentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    service = get_livestock_service()
    service.apply(
        service.registry.revoke_role,
        caller,
        serializer.validated_data['role'],
        serializer.validated_data['account']
    )
    return Response({
        'role': serializer.validated_data['role'],
        'account': serializer.validated_data['account'].lower(),
        'granted': False,
    })


# ----------------------------------------------------------------------
# LiveStake
# ----------------------------------------------------------------------

@api_view(['GET'])
def stake_detail(request, token_id):
    service = get_livestock_service()
    with service.lock:
        record = service.stake_ledger.get_stake_record(token_id)
        return Response({
            'token_id': token_id,
            'staker': service.stake_ledger.get_staker(token_id),
            'has_report_access': service.stake_ledger.has_report_access(token_id),
            'staked_at': record.staked_at if record else None,
        })


@api_view(['GET'])
def staked_tokens(request, address):
    service = get_livestock_service()
    return _token_list(service.stake_ledger.get_staked_tokens(address), staker=address.lower())


@api_view(['POST'])
def stake_livestock(request, token_id):
    """Stake a token the caller holds; the ledger must already be approved."""
    caller = _caller(request)
    service = get_livestock_service()
    record = service.apply(service.stake_ledger.stake, caller, token_id)
    return Response(
        {
            'token_id': token_id,
            'staker': record.staker,
            'staked_at': record.staked_at,
            'has_report_access': True,
        },
        status=status.HTTP_201_CREATED
    )


@api_view(['POST'])
def unstake_livestock(request, token_id):
    caller = _caller(request)
    service = get_livestock_service()
    service.apply(service.stake_ledger.unstake, caller, token_id)
    return Response({
        'token_id': token_id,
        'owner': service.registry.owner_of(token_id),
        'has_report_access': service.stake_ledger.has_report_access(token_id),
    })

"""
Request and response serializers for the livestock REST API.
"""

from rest_framework import serializers

from .registry import Role

ADDRESS_REGEX = r'^0x[0-9a-fA-F]{40}$'

# Labels are stored verbatim, as the Python API does
LABEL_OPTIONS = {'trim_whitespace': False, 'allow_blank': True}


class AddressField(serializers.RegexField):
    def __init__(self, **kwargs):
        kwargs.setdefault('error_messages', {'invalid': 'Enter a 0x-prefixed 20-byte hex address.'})
        super().__init__(ADDRESS_REGEX, **kwargs)


class MintLivestockSerializer(serializers.Serializer):
    to = AddressField()
    species = serializers.CharField(max_length=64, **LABEL_OPTIONS)
    birth_date = serializers.IntegerField(min_value=0)
    weight = serializers.IntegerField(min_value=0)
    health_status = serializers.CharField(max_length=64, **LABEL_OPTIONS)
    farm_id = serializers.CharField(max_length=64, **LABEL_OPTIONS)


class UpdateMetadataSerializer(serializers.Serializer):
    weight = serializers.IntegerField(min_value=0)
    health_status = serializers.CharField(max_length=64, **LABEL_OPTIONS)


class ApproveSerializer(serializers.Serializer):
    delegate = AddressField()


class OperatorApprovalSerializer(serializers.Serializer):
    operator = AddressField()
    approved = serializers.BooleanField()


class TransferSerializer(serializers.Serializer):
    from_address = AddressField()
    to = AddressField()


class RoleAssignmentSerializer(serializers.Serializer):
    account = AddressField()
    role = serializers.ChoiceField(choices=[role.value for role in Role], default=Role.FARMER.value)


class LivestockRecordSerializer(serializers.Serializer):
    """Livestock metadata plus the current custody view of the token."""
    id = serializers.IntegerField()
    species = serializers.CharField()
    birth_date = serializers.IntegerField()
    weight = serializers.IntegerField()
    health_status = serializers.CharField()
    farm_id = serializers.CharField()
    owner = serializers.CharField()
    has_report_access = serializers.BooleanField()

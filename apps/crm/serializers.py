"""
Serializers for CRM resources.

Foreign keys accept ids of the request tenant only (TenantRelatedField);
owners must be active members of the tenant (TenantMemberField).
"""
from rest_framework import serializers

from apps.core.serializers import TenantMemberField, TenantRelatedField, UserSummaryField
from apps.crm.models import Activity, Contact, Customer, Deal, Lead, Opportunity


class CustomerSerializer(serializers.ModelSerializer):
    owner = TenantMemberField(required=False, allow_null=True)
    owner_detail = UserSummaryField(source='owner')
    contact_count = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = [
            'id', 'company_name', 'email', 'phone', 'website', 'industry', 'status',
            'owner', 'owner_detail', 'address', 'tags', 'notes', 'contact_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_contact_count(self, obj):
        return obj.contacts.count()

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError('tags must be a list of strings')
        return value


class ContactSerializer(serializers.ModelSerializer):
    customer = TenantRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)

    class Meta:
        model = Contact
        fields = [
            'id', 'customer', 'first_name', 'last_name', 'email', 'phone',
            'position', 'is_primary', 'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class LeadSerializer(serializers.ModelSerializer):
    owner = TenantMemberField(required=False, allow_null=True)
    owner_detail = UserSummaryField(source='owner')
    converted_customer = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = Lead
        fields = [
            'id', 'name', 'company', 'email', 'phone', 'source', 'status', 'score',
            'estimated_value', 'owner', 'owner_detail', 'notes',
            'converted_customer', 'converted_at', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'converted_customer', 'converted_at', 'created_at', 'updated_at']

    def validate_status(self, value):
        if value == 'CONVERTED' and (self.instance is None or self.instance.status != 'CONVERTED'):
            raise serializers.ValidationError('Use the convert endpoint to convert a lead')
        return value


class LeadConvertSerializer(serializers.Serializer):
    """Input for POST /v1/crm/leads/{id}/convert. Every field is optional."""

    company_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    opportunity_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    value = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True,
                                     min_value=0)
    expected_close_date = serializers.DateField(required=False, allow_null=True)


class OpportunitySerializer(serializers.ModelSerializer):
    customer = TenantRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    lead = TenantRelatedField(queryset=Lead.objects.all(), required=False, allow_null=True)
    owner = TenantMemberField(required=False, allow_null=True)
    probability = serializers.IntegerField(min_value=0, max_value=100, required=False)

    class Meta:
        model = Opportunity
        fields = [
            'id', 'name', 'customer', 'lead', 'stage', 'probability', 'value', 'currency',
            'expected_close_date', 'owner', 'description', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class DealSerializer(serializers.ModelSerializer):
    customer = TenantRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    opportunity = TenantRelatedField(queryset=Opportunity.objects.all(), required=False, allow_null=True)
    owner = TenantMemberField(required=False, allow_null=True)

    class Meta:
        model = Deal
        fields = [
            'id', 'name', 'customer', 'opportunity', 'amount', 'currency', 'status',
            'close_date', 'owner', 'description', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_currency(self, value):
        value = value.upper()
        if len(value) != 3 or not value.isalpha():
            raise serializers.ValidationError('currency must be a 3-letter ISO code')
        return value


class ActivitySerializer(serializers.ModelSerializer):
    customer = TenantRelatedField(queryset=Customer.objects.all(), required=False, allow_null=True)
    contact = TenantRelatedField(queryset=Contact.objects.all(), required=False, allow_null=True)
    lead = TenantRelatedField(queryset=Lead.objects.all(), required=False, allow_null=True)
    deal = TenantRelatedField(queryset=Deal.objects.all(), required=False, allow_null=True)
    owner = TenantMemberField(required=False, allow_null=True)

    class Meta:
        model = Activity
        fields = [
            'id', 'subject', 'type', 'status', 'description', 'outcome', 'due_at',
            'completed_at', 'customer', 'contact', 'lead', 'deal', 'owner',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'completed_at', 'created_at', 'updated_at']

from rest_framework import serializers

from backoffice.decimals import decimal_str
from backoffice.fields import DecimalModelSerializer, ExactDecimalField

from .models import VESTING_FREQUENCIES, OptionExerciseRequest, OptionGrant, OptionPlan
from .vesting import calculate_vesting

QUANTITY_INPUT = dict(max_digits=20, decimal_places=0)
PRICE_INPUT = dict(max_digits=20, decimal_places=6)


# ────────────────────────────────
#  OPTION PLANS
# ────────────────────────────────
class OptionPlanCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    shareClassId = serializers.IntegerField(source="share_class_id")
    totalPoolSize = serializers.DecimalField(source="total_pool_size", **QUANTITY_INPUT)
    terminationPolicy = serializers.ChoiceField(
        source="termination_policy", choices=OptionPlan.TERMINATION_POLICIES, required=False
    )
    exerciseWindowDays = serializers.IntegerField(source="exercise_window_days", min_value=0, required=False)
    boardApprovalDate = serializers.DateField(source="board_approval_date", required=False, allow_null=True)
    defaultCliffMonths = serializers.IntegerField(source="default_cliff_months", min_value=0, required=False)
    defaultVestingMonths = serializers.IntegerField(source="default_vesting_months", min_value=0, required=False)
    defaultVestingFrequency = serializers.ChoiceField(
        source="default_vesting_frequency", choices=VESTING_FREQUENCIES, required=False
    )
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        cliff = attrs.get("default_cliff_months")
        months = attrs.get("default_vesting_months")
        if cliff is not None and months is not None and cliff > months:
            raise serializers.ValidationError(
                {"defaultCliffMonths": "Cannot be longer than defaultVestingMonths."}
            )
        return attrs


class OptionPlanUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False)
    totalPoolSize = serializers.DecimalField(source="total_pool_size", required=False, **QUANTITY_INPUT)
    terminationPolicy = serializers.ChoiceField(
        source="termination_policy", choices=OptionPlan.TERMINATION_POLICIES, required=False
    )
    exerciseWindowDays = serializers.IntegerField(source="exercise_window_days", min_value=0, required=False)
    boardApprovalDate = serializers.DateField(source="board_approval_date", required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class OptionPlanSerializer(DecimalModelSerializer):
    companyId = serializers.IntegerField(source="company_id", read_only=True)
    shareClassId = serializers.IntegerField(source="share_class_id", read_only=True)
    shareClassName = serializers.CharField(source="share_class.class_name", read_only=True)
    totalPoolSize = ExactDecimalField(source="total_pool_size", read_only=True)
    totalGranted = serializers.SerializerMethodField()
    totalExercised = serializers.SerializerMethodField()
    optionsAvailable = serializers.SerializerMethodField()
    activeGrantCount = serializers.SerializerMethodField()
    terminationPolicy = serializers.CharField(source="termination_policy", read_only=True)
    exerciseWindowDays = serializers.IntegerField(source="exercise_window_days", read_only=True)
    boardApprovalDate = serializers.DateField(source="board_approval_date", read_only=True)
    defaultCliffMonths = serializers.IntegerField(source="default_cliff_months", read_only=True)
    defaultVestingMonths = serializers.IntegerField(source="default_vesting_months", read_only=True)
    defaultVestingFrequency = serializers.CharField(source="default_vesting_frequency", read_only=True)
    closedAt = serializers.DateTimeField(source="closed_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = OptionPlan
        fields = [
            "id", "companyId", "name", "shareClassId", "shareClassName", "status",
            "totalPoolSize", "totalGranted", "totalExercised", "optionsAvailable",
            "activeGrantCount", "terminationPolicy", "exerciseWindowDays",
            "boardApprovalDate", "defaultCliffMonths", "defaultVestingMonths",
            "defaultVestingFrequency", "notes", "closedAt", "createdAt", "updatedAt",
        ]

    # the read paths annotate live sums; fall back to the stored counters
    def _granted(self, obj):
        return getattr(obj, "granted_sum", obj.total_granted)

    def get_totalGranted(self, obj):
        return decimal_str(self._granted(obj))

    def get_totalExercised(self, obj):
        return decimal_str(getattr(obj, "exercised_sum", obj.total_exercised))

    def get_optionsAvailable(self, obj):
        return decimal_str(obj.total_pool_size - self._granted(obj))

    def get_activeGrantCount(self, obj):
        return getattr(obj, "active_grant_count", None)


# ────────────────────────────────
#  OPTION GRANTS
# ────────────────────────────────
class OptionGrantCreateSerializer(serializers.Serializer):
    optionPlanId = serializers.IntegerField(source="plan_id")
    shareholderId = serializers.IntegerField(source="shareholder_id", required=False, allow_null=True)
    employeeName = serializers.CharField(source="employee_name", max_length=200)
    employeeEmail = serializers.EmailField(source="employee_email")
    quantity = serializers.DecimalField(**QUANTITY_INPUT)
    strikePrice = serializers.DecimalField(source="strike_price", **PRICE_INPUT)
    grantDate = serializers.DateField(source="grant_date")
    expirationDate = serializers.DateField(source="expiration_date")
    cliffMonths = serializers.IntegerField(source="cliff_months", min_value=0, required=False)
    vestingDurationMonths = serializers.IntegerField(source="vesting_duration_months", min_value=0, required=False)
    vestingFrequency = serializers.ChoiceField(source="vesting_frequency", choices=VESTING_FREQUENCIES, required=False)
    accelerationOnCoc = serializers.BooleanField(source="acceleration_on_coc", required=False, default=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class OptionGrantSerializer(DecimalModelSerializer):
    """Grant with its vesting snapshot as of today."""

    companyId = serializers.IntegerField(source="company_id", read_only=True)
    optionPlanId = serializers.IntegerField(source="plan_id", read_only=True)
    planName = serializers.CharField(source="plan.name", read_only=True)
    shareholderId = serializers.IntegerField(source="shareholder_id", read_only=True)
    shareholderName = serializers.SerializerMethodField()
    employeeName = serializers.CharField(source="employee_name", read_only=True)
    employeeEmail = serializers.EmailField(source="employee_email", read_only=True)
    strikePrice = ExactDecimalField(source="strike_price", read_only=True)
    grantDate = serializers.DateField(source="grant_date", read_only=True)
    expirationDate = serializers.DateField(source="expiration_date", read_only=True)
    cliffMonths = serializers.IntegerField(source="cliff_months", read_only=True)
    vestingDurationMonths = serializers.IntegerField(source="vesting_duration_months", read_only=True)
    vestingFrequency = serializers.CharField(source="vesting_frequency", read_only=True)
    cliffPercentage = ExactDecimalField(source="cliff_percentage", read_only=True)
    accelerationOnCoc = serializers.BooleanField(source="acceleration_on_coc", read_only=True)
    terminatedAt = serializers.DateTimeField(source="terminated_at", read_only=True)
    vestedAtTermination = ExactDecimalField(source="vested_at_termination", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    vesting = serializers.SerializerMethodField()

    class Meta:
        model = OptionGrant
        fields = [
            "id", "companyId", "optionPlanId", "planName", "shareholderId",
            "shareholderName", "employeeName", "employeeEmail", "quantity",
            "strikePrice", "exercised", "status", "grantDate", "expirationDate",
            "cliffMonths", "vestingDurationMonths", "vestingFrequency",
            "cliffPercentage", "accelerationOnCoc", "terminatedAt",
            "vestedAtTermination", "notes", "createdAt", "vesting",
        ]
        read_only_fields = fields

    def get_shareholderName(self, obj):
        return obj.shareholder.name if obj.shareholder_id else None

    def get_vesting(self, obj):
        return calculate_vesting(obj).as_dict()


# ────────────────────────────────
#  EXERCISE REQUESTS
# ────────────────────────────────
class ExerciseRequestCreateSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(**QUANTITY_INPUT)


class OptionExerciseSerializer(DecimalModelSerializer):
    grantId = serializers.IntegerField(source="grant_id", read_only=True)
    employeeName = serializers.CharField(source="grant.employee_name", read_only=True)
    planName = serializers.CharField(source="grant.plan.name", read_only=True)
    totalCost = ExactDecimalField(source="total_cost", read_only=True)
    paymentReference = serializers.CharField(source="payment_reference", read_only=True)
    createdBy = serializers.IntegerField(source="created_by_id", read_only=True)
    confirmedBy = serializers.IntegerField(source="confirmed_by_id", read_only=True)
    confirmedAt = serializers.DateTimeField(source="confirmed_at", read_only=True)
    cancelledAt = serializers.DateTimeField(source="cancelled_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = OptionExerciseRequest
        fields = [
            "id", "grantId", "employeeName", "planName", "quantity", "totalCost",
            "paymentReference", "status", "createdBy", "confirmedBy",
            "confirmedAt", "cancelledAt", "createdAt",
        ]
        read_only_fields = fields

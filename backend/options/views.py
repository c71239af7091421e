from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import READ_ROLES, HasCompanyRole

from . import services
from .serializers import (
    ExerciseRequestCreateSerializer,
    OptionExerciseSerializer,
    OptionGrantCreateSerializer,
    OptionGrantSerializer,
    OptionPlanCreateSerializer,
    OptionPlanSerializer,
    OptionPlanUpdateSerializer,
)

EMPLOYEE_ROLES = ("ADMIN", "EMPLOYEE")


class CompanyScopedMixin:
    permission_classes = [permissions.IsAuthenticated, HasCompanyRole]

    @property
    def company_id(self):
        return self.kwargs["company_id"]

    def created(self, data):
        return Response({"success": True, "data": data}, status=status.HTTP_201_CREATED)

    def ok(self, data):
        return Response({"success": True, "data": data})


# ────────────────────────────────
#  OPTION PLANS
# ────────────────────────────────
class OptionPlanListCreateView(CompanyScopedMixin, generics.ListAPIView):
    serializer_class = OptionPlanSerializer
    allowed_roles = {"GET": READ_ROLES, "POST": ("ADMIN",)}

    def get_queryset(self):
        params = self.request.query_params
        return services.list_plans(self.company_id, status=params.get("status"), sort=params.get("sort"))

    def post(self, request, company_id):
        ser = OptionPlanCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        plan = services.create_plan(company_id, ser.validated_data, actor=request.user)
        return self.created(OptionPlanSerializer(services.find_plan_by_id(company_id, plan.pk)).data)


class OptionPlanDetailView(CompanyScopedMixin, APIView):
    allowed_roles = {"GET": READ_ROLES, "PUT": ("ADMIN",)}

    def get(self, request, company_id, plan_id):
        return self.ok(OptionPlanSerializer(services.find_plan_by_id(company_id, plan_id)).data)

    def put(self, request, company_id, plan_id):
        ser = OptionPlanUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        services.update_plan(company_id, plan_id, ser.validated_data, actor=request.user)
        return self.ok(OptionPlanSerializer(services.find_plan_by_id(company_id, plan_id)).data)


class OptionPlanCloseView(CompanyScopedMixin, APIView):
    allowed_roles = {"POST": ("ADMIN",)}

    def post(self, request, company_id, plan_id):
        services.close_plan(company_id, plan_id, actor=request.user)
        return self.ok(OptionPlanSerializer(services.find_plan_by_id(company_id, plan_id)).data)


# ────────────────────────────────
#  OPTION GRANTS
# ────────────────────────────────
class OptionGrantListCreateView(CompanyScopedMixin, generics.ListAPIView):
    serializer_class = OptionGrantSerializer
    allowed_roles = {"GET": READ_ROLES, "POST": ("ADMIN",)}

    def get_queryset(self):
        params = self.request.query_params
        return services.list_grants(
            self.company_id,
            status=params.get("status"),
            plan_id=params.get("optionPlanId"),
            shareholder_id=params.get("shareholderId"),
            sort=params.get("sort"),
        )

    def post(self, request, company_id):
        ser = OptionGrantCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        grant = services.create_grant(company_id, ser.validated_data, actor=request.user)
        return self.created(OptionGrantSerializer(services.get_grant(company_id, grant.pk)).data)


class OptionGrantDetailView(CompanyScopedMixin, APIView):
    allowed_roles = {"GET": READ_ROLES}

    def get(self, request, company_id, grant_id):
        return self.ok(OptionGrantSerializer(services.get_grant(company_id, grant_id)).data)


class GrantVestingScheduleView(CompanyScopedMixin, APIView):
    allowed_roles = {"GET": READ_ROLES}

    def get(self, request, company_id, grant_id):
        return self.ok(services.grant_vesting_schedule(company_id, grant_id))


class OptionGrantCancelView(CompanyScopedMixin, APIView):
    allowed_roles = {"POST": ("ADMIN",)}

    def post(self, request, company_id, grant_id):
        services.cancel_grant(company_id, grant_id, actor=request.user)
        return self.ok(OptionGrantSerializer(services.get_grant(company_id, grant_id)).data)


class ExerciseRequestCreateView(CompanyScopedMixin, APIView):
    allowed_roles = {"POST": EMPLOYEE_ROLES}

    def post(self, request, company_id, grant_id):
        ser = ExerciseRequestCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        exercise = services.create_exercise_request(
            company_id, grant_id, ser.validated_data["quantity"], actor=request.user
        )
        return self.created(OptionExerciseSerializer(services.get_exercise(company_id, exercise.pk)).data)


# ────────────────────────────────
#  EXERCISE REQUESTS
# ────────────────────────────────
class OptionExerciseListView(CompanyScopedMixin, generics.ListAPIView):
    serializer_class = OptionExerciseSerializer
    allowed_roles = {"GET": READ_ROLES}

    def get_queryset(self):
        params = self.request.query_params
        return services.list_exercises(
            self.company_id,
            status=params.get("status"),
            grant_id=params.get("grantId"),
            sort=params.get("sort"),
        )


class OptionExerciseDetailView(CompanyScopedMixin, APIView):
    allowed_roles = {"GET": READ_ROLES}

    def get(self, request, company_id, exercise_id):
        return self.ok(OptionExerciseSerializer(services.get_exercise(company_id, exercise_id)).data)


class ExerciseConfirmView(CompanyScopedMixin, APIView):
    allowed_roles = {"POST": ("ADMIN",)}

    def post(self, request, company_id, exercise_id):
        services.confirm_exercise_payment(company_id, exercise_id, actor=request.user)
        return self.ok(OptionExerciseSerializer(services.get_exercise(company_id, exercise_id)).data)


class ExerciseCancelView(CompanyScopedMixin, APIView):
    allowed_roles = {"POST": EMPLOYEE_ROLES}

    def post(self, request, company_id, exercise_id):
        services.cancel_exercise(company_id, exercise_id, actor=request.user)
        return self.ok(OptionExerciseSerializer(services.get_exercise(company_id, exercise_id)).data)

from django.urls import path

from .views import (
    ExerciseCancelView,
    ExerciseConfirmView,
    ExerciseRequestCreateView,
    GrantVestingScheduleView,
    OptionExerciseDetailView,
    OptionExerciseListView,
    OptionGrantCancelView,
    OptionGrantDetailView,
    OptionGrantListCreateView,
    OptionPlanCloseView,
    OptionPlanDetailView,
    OptionPlanListCreateView,
)

urlpatterns = [
    path('option-plans/', OptionPlanListCreateView.as_view(), name='option-plan-list'),
    path('option-plans/<int:plan_id>/', OptionPlanDetailView.as_view(), name='option-plan-detail'),
    path('option-plans/<int:plan_id>/close/', OptionPlanCloseView.as_view(), name='option-plan-close'),

    path('option-grants/', OptionGrantListCreateView.as_view(), name='option-grant-list'),
    path('option-grants/<int:grant_id>/', OptionGrantDetailView.as_view(), name='option-grant-detail'),
    path('option-grants/<int:grant_id>/vesting/', GrantVestingScheduleView.as_view(), name='option-grant-vesting'),
    path('option-grants/<int:grant_id>/cancel/', OptionGrantCancelView.as_view(), name='option-grant-cancel'),
    path('option-grants/<int:grant_id>/exercise/', ExerciseRequestCreateView.as_view(), name='option-grant-exercise'),

    path('option-exercises/', OptionExerciseListView.as_view(), name='option-exercise-list'),
    path('option-exercises/<int:exercise_id>/', OptionExerciseDetailView.as_view(), name='option-exercise-detail'),
    path('option-exercises/<int:exercise_id>/confirm/', ExerciseConfirmView.as_view(), name='option-exercise-confirm'),
    path('option-exercises/<int:exercise_id>/cancel/', ExerciseCancelView.as_view(), name='option-exercise-cancel'),
]

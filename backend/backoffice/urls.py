from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

company_patterns = [
    path('', include('options.urls')),
    path('', include('captable.urls')),
]

urlpatterns = [
    # JWT auth
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    path('api/v1/companies/<int:company_id>/', include(company_patterns)),

    # Browsable DRF auth
    path('api-auth/', include('rest_framework.urls')),
]

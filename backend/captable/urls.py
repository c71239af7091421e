from django.urls import path
from .views import CapTableView

urlpatterns = [
    path('cap-table/', CapTableView.as_view(), name='cap-table'),
]
